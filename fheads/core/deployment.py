"""
Deployment helpers - wire a runtime, token and auction together.

Mirrors the usual fixture: deploy the confidential token, deploy the
auction pointing at it, then drive it from client-side encrypted inputs.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from fheads.core.auction import AdsAuction
from fheads.core.config import AuctionConfig
from fheads.core.fhe import Ciphertext, ExternalInput, MockRuntime
from fheads.core.token import ConfidentialERC20
from fheads.crypto import generate_keypair


@dataclass
class Deployment:
    """A mock chain: runtime, token and auction sharing one deployer."""
    runtime: MockRuntime
    token: ConfidentialERC20
    auction: AdsAuction
    deployer: bytes

    # =========================================================================
    # Client-side helpers
    # =========================================================================

    def encrypt_for(self, contract: bytes, user: bytes, values: Sequence[int]) -> List[ExternalInput]:
        """Encrypt uint64 values for ``user`` calling ``contract`` (one shared proof)."""
        builder = self.runtime.create_encrypted_input(contract, user)
        for value in values:
            builder.add64(value)
        return builder.encrypt().inputs()

    def fund(self, who: bytes, amount: int) -> None:
        self.token.mint(self.deployer, who, amount)

    def approve(self, owner: bytes, amount: int) -> None:
        """Let the auction pull up to ``amount`` from ``owner``."""
        [encrypted] = self.encrypt_for(self.token.address, owner, [amount])
        self.token.approve(owner, self.auction.address, encrypted)

    def place_bid(self, bidder: bytes, weights: Sequence[int], deposit: int, approve: bool = True) -> None:
        """Approve (optionally) and submit a bid with plaintext inputs."""
        if approve:
            self.approve(bidder, deposit)
        inputs = self.encrypt_for(self.auction.address, bidder, [*weights, deposit])
        self.auction.bid(bidder, inputs[:-1], inputs[-1])

    def query(self, requester: bytes, query: Sequence[int]) -> Ciphertext:
        return self.auction.compute_ad_provider(
            requester, self.encrypt_for(self.auction.address, requester, query)
        )

    def balance(self, who: bytes) -> int:
        """Plaintext token balance as its holder would decrypt it."""
        return self.runtime.decrypt(who, self.token.balance_of(who))

    def deposit(self, who: bytes) -> int:
        """Plaintext escrow deposit as its holder would decrypt it."""
        return self.auction.decrypt(who, self.auction.get_deposit(who))


def deploy(
    config: Optional[AuctionConfig] = None,
    runtime: Optional[MockRuntime] = None,
    deployer: Optional[bytes] = None,
) -> Deployment:
    """
    Deploy a token and an auction on a (new) mock runtime.

    Args:
        config: Auction configuration (defaults if None)
        runtime: Existing runtime to deploy on
        deployer: Deployer address (random if None)
    """
    config = config or AuctionConfig()
    runtime = runtime or MockRuntime()
    deployer = deployer or generate_keypair().address

    token = ConfidentialERC20(runtime, deployer, config.token_name, config.token_symbol, deploy_nonce=0)
    auction = AdsAuction(runtime, token, deployer, config, deploy_nonce=1)
    return Deployment(runtime=runtime, token=token, auction=auction, deployer=deployer)
