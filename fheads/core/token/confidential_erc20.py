"""
Confidential ERC20 - encrypted-balance token consumed by the auction.

Balances and allowances are euint64 ciphertexts. Mint amounts and the total
supply are public. A transfer is accepted only when the runtime confirms,
as an encrypted boolean revealed to the token alone, that the balance (and
for pull transfers, the allowance) covers the amount. Otherwise the call
raises and nothing changes.

Every new balance handle is granted to its holder and to the token;
every new allowance handle to owner, spender and token.
"""

from typing import Dict, Optional, Protocol, Tuple, Union, runtime_checkable

from fheads.core.errors import AccessDenied, InsufficientAllowance, InsufficientBalance, NotOwner
from fheads.core.fhe import Ciphertext, CiphertextRuntime, ExternalInput, FheType
from fheads.crypto import derive_contract_address, short_hex
from fheads.utils.logger import get_logger
from fheads.utils.validation import MAX_UINT64, require, validate_address, validate_amount

logger = get_logger("token")

Amount = Union[ExternalInput, Ciphertext]


@runtime_checkable
class ConfidentialToken(Protocol):
    """Token operations the escrow ledger relies on."""
    address: bytes

    def transfer(self, caller: bytes, to: bytes, amount: Amount) -> Ciphertext: ...

    def transfer_from(self, caller: bytes, owner: bytes, to: bytes, amount: Amount) -> Ciphertext: ...

    def balance_of(self, who: bytes) -> Ciphertext: ...

    def snapshot(self) -> tuple: ...

    def restore(self, snapshot: tuple) -> None: ...


class ConfidentialERC20:
    """
    Encrypted-balance ERC20.

    Attributes:
        address: Contract address (derived from owner and deploy nonce)
        owner: Only principal allowed to mint
        total_supply: Public supply, capped at 2**64 - 1
    """

    decimals = 6

    def __init__(
        self,
        runtime: CiphertextRuntime,
        owner: bytes,
        name: str = "Naraggara",
        symbol: str = "NARA",
        deploy_nonce: int = 0,
    ):
        require(validate_address(owner, "owner"))
        self.runtime = runtime
        self.owner = owner
        self.name = name
        self.symbol = symbol
        self.address = derive_contract_address(owner, deploy_nonce)

        self.total_supply: int = 0
        self._balances: Dict[bytes, Ciphertext] = {}
        self._allowances: Dict[Tuple[bytes, bytes], Ciphertext] = {}

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _resolve(self, caller: bytes, amount: Amount) -> Ciphertext:
        """Turn a submitted amount into a ciphertext the caller may spend."""
        if isinstance(amount, ExternalInput):
            return self.runtime.verify_input(amount, FheType.EUINT64, self.address, caller)
        if not self.runtime.is_allowed(amount, caller):
            raise AccessDenied(caller, amount.handle)
        return amount

    def _reveal(self, flag: Ciphertext) -> bool:
        """Decrypt an encrypted boolean for the token's own use."""
        self.runtime.allow(flag, self.address)
        return bool(self.runtime.decrypt(self.address, flag))

    def _zero(self, *holders: bytes) -> Ciphertext:
        zero = self.runtime.as_euint64(0)
        for holder in (self.address, *holders):
            self.runtime.allow(zero, holder)
        return zero

    def _set_balance(self, who: bytes, value: Ciphertext) -> None:
        self.runtime.allow(value, self.address)
        self.runtime.allow(value, who)
        self._balances[who] = value

    def _set_allowance(self, owner: bytes, spender: bytes, value: Ciphertext) -> None:
        for principal in (self.address, owner, spender):
            self.runtime.allow(value, principal)
        self._allowances[(owner, spender)] = value

    def _move(self, sender: bytes, to: bytes, amount: Ciphertext) -> None:
        """Debit sender, credit recipient. Balance was checked by the caller."""
        self._set_balance(sender, self.runtime.sub(self.balance_of(sender), amount))
        self._set_balance(to, self.runtime.add(self.balance_of(to), amount))

    # =========================================================================
    # Views
    # =========================================================================

    def balance_of(self, who: bytes) -> Ciphertext:
        """Encrypted balance; unknown accounts get an encrypted zero."""
        if who not in self._balances:
            self._balances[who] = self._zero(who)
        return self._balances[who]

    def allowance(self, owner: bytes, spender: bytes) -> Ciphertext:
        key = (owner, spender)
        if key not in self._allowances:
            self._allowances[key] = self._zero(owner, spender)
        return self._allowances[key]

    # =========================================================================
    # Mutations
    # =========================================================================

    def mint(self, caller: bytes, to: bytes, amount: int) -> None:
        """
        Mint a public amount to ``to``. Owner only.

        Raises:
            NotOwner: If caller is not the token owner
            ValueError: If amount is invalid or supply would exceed uint64
        """
        if caller != self.owner:
            raise NotOwner(f"Only the token owner may mint, not {short_hex(caller)}")
        require(validate_address(to, "to"))
        require(validate_amount(amount))
        if self.total_supply + amount > MAX_UINT64:
            raise ValueError("Mint would push total supply past 2**64 - 1")

        self._set_balance(to, self.runtime.add(self.balance_of(to), amount))
        self.total_supply += amount
        logger.info(f"Minted {amount} {self.symbol} to {short_hex(to)} (supply={self.total_supply})")

    def approve(self, caller: bytes, spender: bytes, amount: Amount) -> None:
        """Set the encrypted allowance of ``spender`` over caller's balance."""
        require(validate_address(spender, "spender"))
        value = self._resolve(caller, amount)
        self._set_allowance(caller, spender, value)
        logger.debug(f"{short_hex(caller)} approved {short_hex(spender)}")

    def transfer(self, caller: bytes, to: bytes, amount: Amount) -> Ciphertext:
        """
        Move an encrypted amount from caller to ``to``.

        Raises:
            InsufficientBalance: If the balance does not cover the amount
        """
        require(validate_address(to, "to"))
        value = self._resolve(caller, amount)

        if not self._reveal(self.runtime.ge(self.balance_of(caller), value)):
            raise InsufficientBalance(f"Balance of {short_hex(caller)} does not cover transfer")

        self._move(caller, to, value)
        logger.debug(f"Transfer {short_hex(caller)} -> {short_hex(to)}")
        return value

    def transfer_from(self, caller: bytes, owner: bytes, to: bytes, amount: Amount) -> Ciphertext:
        """
        Pull an encrypted amount from ``owner`` to ``to`` on caller's allowance.

        All checks run before any state changes.

        Raises:
            InsufficientAllowance: If caller's allowance does not cover the amount
            InsufficientBalance: If owner's balance does not cover the amount
        """
        require(validate_address(owner, "owner"))
        require(validate_address(to, "to"))
        value = self._resolve(caller, amount)
        allowance = self.allowance(owner, caller)

        if not self._reveal(self.runtime.ge(allowance, value)):
            raise InsufficientAllowance(
                f"Allowance of {short_hex(caller)} over {short_hex(owner)} does not cover transfer"
            )
        if not self._reveal(self.runtime.ge(self.balance_of(owner), value)):
            raise InsufficientBalance(f"Balance of {short_hex(owner)} does not cover transfer")

        self._set_allowance(owner, caller, self.runtime.sub(allowance, value))
        self._move(owner, to, value)
        logger.debug(f"Pull {short_hex(owner)} -> {short_hex(to)} by {short_hex(caller)}")
        return value

    # =========================================================================
    # Transition support
    # =========================================================================

    def snapshot(self) -> tuple:
        return dict(self._balances), dict(self._allowances), self.total_supply

    def restore(self, snapshot: tuple) -> None:
        balances, allowances, total_supply = snapshot
        self._balances = dict(balances)
        self._allowances = dict(allowances)
        self.total_supply = total_supply

    def __repr__(self) -> str:
        return f"ConfidentialERC20({self.symbol}, holders={len(self._balances)}, supply={self.total_supply})"
