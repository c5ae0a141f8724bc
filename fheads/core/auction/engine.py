"""
AdsAuction - the auction contract's public entry points.

Each entry point is one atomic transition, mirroring a transaction on the
chain the contract would be deployed to:

1. Take the transition lock (transitions never interleave)
2. Snapshot the bid book, escrow, settlements, token state and the ACL
3. Run the operation
4. On any exception, restore every snapshot and re-raise
5. On success, record a receipt with the FHE gas consumed

Entry points: ``bid``, ``withdraw``, ``get_deposit``,
``compute_ad_provider``, ``get_ad_provider`` and ``claim_revenue``.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

from fheads.core.auction.bid_book import BidBook
from fheads.core.auction.escrow import EscrowLedger
from fheads.core.auction.gateway import AccessGateway
from fheads.core.auction.pricing import PricingRule, make_pricing_rule
from fheads.core.auction.selector import WinnerSelector
from fheads.core.config import AuctionConfig
from fheads.core.fhe import Ciphertext, CiphertextRuntime, ExternalInput
from fheads.core.fhe.runtime import Plaintext
from fheads.core.token import ConfidentialToken
from fheads.crypto import bytes_to_hex, derive_contract_address, short_hex
from fheads.utils.logger import get_logger
from fheads.utils.validation import require, validate_address

logger = get_logger("engine")


@dataclass
class TransitionReceipt:
    """Record of one committed transition."""
    operation: str
    caller: bytes
    fhe_gas: int
    fhe_ops: int


class AdsAuction:
    """
    Sealed-bid, multi-criterion ad auction over encrypted values.

    Attributes:
        address: Contract address of the auction
        owner: Deployer; receives settlement revenue
        config: Auction parameters
        receipts: Receipts of committed transitions, oldest first
    """

    def __init__(
        self,
        runtime: CiphertextRuntime,
        token: ConfidentialToken,
        owner: bytes,
        config: Optional[AuctionConfig] = None,
        pricing_rule: Optional[PricingRule] = None,
        deploy_nonce: int = 1,
    ):
        require(validate_address(owner, "owner"))
        self.config = config or AuctionConfig()
        self.runtime = runtime
        self.token = token
        self.owner = owner
        self.address = derive_contract_address(owner, deploy_nonce)

        self.gateway = AccessGateway(runtime)
        self.escrow = EscrowLedger(runtime, token, self.gateway, self.address, owner)
        self.bid_book = BidBook(
            runtime,
            self.escrow,
            self.address,
            num_criteria=self.config.num_criteria,
            max_weight=self.config.max_weight,
            max_deposit=self.config.max_deposit,
        )
        self.selector = WinnerSelector(
            runtime,
            self.bid_book,
            self.escrow,
            self.gateway,
            pricing_rule or make_pricing_rule(self.config.pricing_rule, self.config.fixed_price),
            self.address,
        )

        self.receipts: List[TransitionReceipt] = []
        self._lock = threading.RLock()
        self._stateful = (self.bid_book, self.escrow, self.selector, self.token)

        logger.info(f"Auction deployed at {bytes_to_hex(self.address)} "
                    f"(K={self.config.num_criteria}, pricing={self.selector.pricing_rule.name})")

    # =========================================================================
    # Transitions
    # =========================================================================

    @contextmanager
    def _transition(self, operation: str, caller: bytes) -> Iterator[None]:
        """All-or-nothing execution of one entry point."""
        require(validate_address(caller, "caller"))
        with self._lock:
            acl_checkpoint = self.runtime.acl.checkpoint()
            snapshots = [(component, component.snapshot()) for component in self._stateful]
            gas_start = self.runtime.gas_meter.reading()

            try:
                yield
            except Exception as e:
                for component, snapshot in snapshots:
                    component.restore(snapshot)
                dropped = self.runtime.acl.rollback(acl_checkpoint)
                logger.warning(f"{operation} by {short_hex(caller)} aborted "
                               f"({type(e).__name__}: {e}); {dropped} grant(s) rolled back")
                raise

            used = self.runtime.gas_meter.since(gas_start)
            receipt = TransitionReceipt(operation=operation, caller=caller,
                                        fhe_gas=used.total, fhe_ops=used.op_count)
            self.receipts.append(receipt)
            logger.debug(f"{operation} by {short_hex(caller)} committed: "
                         f"{used.op_count} FHE ops, {used.total} FHE gas")

    @property
    def last_receipt(self) -> Optional[TransitionReceipt]:
        return self.receipts[-1] if self.receipts else None

    # =========================================================================
    # Entry points
    # =========================================================================

    def bid(self, caller: bytes, weights: Sequence[ExternalInput], deposit: ExternalInput) -> None:
        """
        Submit encrypted criterion weights and add an encrypted deposit.

        The caller must have approved this contract on the token for at least
        the deposit amount.

        Raises:
            ValueError: If ``weights`` does not have K entries
            ProofVerificationFailed: If any input proof is rejected
            InsufficientAllowance: If the token allowance is too small
            InsufficientBalance: If the caller's token balance is too small
        """
        with self._transition("bid", caller):
            self.bid_book.bid(caller, weights, deposit)

    def withdraw(self, caller: bytes) -> Ciphertext:
        """Return the caller's whole remaining deposit; returns the amount handle."""
        with self._transition("withdraw", caller):
            return self.escrow.withdraw(caller)

    def get_deposit(self, caller: bytes) -> Ciphertext:
        """Caller's encrypted deposit; the caller is granted decryption of it."""
        with self._transition("getDeposit", caller):
            deposit = self.escrow.deposit_of(caller)
            self.gateway.grant(caller, deposit)
            return deposit

    def compute_ad_provider(self, caller: bytes, query: Sequence[ExternalInput]) -> Ciphertext:
        """
        Privately select the best bidder for the caller's encrypted query.

        Raises:
            EmptyAuction: If nobody has bid yet
            ProofVerificationFailed: If a query proof is rejected
        """
        with self._transition("computeAdProvider", caller):
            return self.selector.compute_ad_provider(caller, query)

    def get_ad_provider(self, caller: bytes) -> Ciphertext:
        """
        Winner handle of the caller's latest query.

        Raises:
            NoSettlement: If the caller never ran a query
        """
        with self._transition("getAdProvider", caller):
            return self.selector.get_ad_provider(caller)

    def claim_revenue(self, caller: bytes) -> Ciphertext:
        """Pay accumulated settlement charges to the owner."""
        with self._transition("claimRevenue", caller):
            return self.escrow.claim_revenue(caller)

    # =========================================================================
    # Decryption and views
    # =========================================================================

    def decrypt(self, caller: bytes, ct: Ciphertext) -> Plaintext:
        """Decrypt a handle the caller holds a grant on."""
        return self.gateway.request_decrypt(caller, ct)

    @property
    def bidders(self):
        return self.bid_book.bidders

    def stats(self) -> dict:
        return {
            "address": bytes_to_hex(self.address),
            "bidders": len(self.bid_book),
            "settlements": len(self.selector.settlements),
            "deposits": self.escrow.deposit_count,
            "withdrawals": self.escrow.withdrawal_count,
            "transitions": len(self.receipts),
            "fhe_gas": sum(r.fhe_gas for r in self.receipts),
            "pricing_rule": self.selector.pricing_rule.name,
        }

    def __repr__(self) -> str:
        return f"AdsAuction({short_hex(self.address)}, bidders={len(self.bid_book)})"
