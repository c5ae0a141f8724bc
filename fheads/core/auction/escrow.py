"""
Escrow Ledger - encrypted bidder deposits.

Conceptual Background:
---------------------
Each bidder's collateral is a single euint64 held by the auction contract:

1. **Deposit**: pulled from the confidential token on the bidder's
   allowance, then added to the stored deposit
2. **Charge**: subtracted by the winner selector at settlement and moved
   into the encrypted revenue pool
3. **Withdraw**: the whole deposit is pushed back through the token and the
   stored value becomes an encryption of zero

Reconciliation:
--------------
    sum(deposits) + revenue == pulled - withdrawn - revenue claimed

The ledger never learns any of these terms; the invariant is checked in
tests against plaintext totals.

Subtraction in ``charge`` is not checked for underflow. The only caller
builds the amount as ``select(is_winner, min(price, deposit), 0)`` so it
never exceeds the stored deposit.
"""

from typing import Dict, Optional

from fheads.core.auction.gateway import AccessGateway
from fheads.core.errors import NotOwner
from fheads.core.fhe import Ciphertext, CiphertextRuntime
from fheads.core.token import ConfidentialToken
from fheads.crypto import short_hex
from fheads.utils.logger import get_logger

logger = get_logger("escrow")


class EscrowLedger:
    """
    Per-bidder encrypted deposits plus the revenue pool.

    Attributes:
        contract: Address of the auction contract holding the funds
        owner: Principal entitled to the revenue pool
        deposit_count: Public count of successful deposits
        withdrawal_count: Public count of withdrawals
    """

    def __init__(
        self,
        runtime: CiphertextRuntime,
        token: ConfidentialToken,
        gateway: AccessGateway,
        contract: bytes,
        owner: bytes,
    ):
        self.runtime = runtime
        self.token = token
        self.gateway = gateway
        self.contract = contract
        self.owner = owner

        self._deposits: Dict[bytes, Ciphertext] = {}
        self._revenue: Optional[Ciphertext] = None

        self.deposit_count = 0
        self.withdrawal_count = 0

    # =========================================================================
    # State Access
    # =========================================================================

    def _store(self, principal: bytes, value: Ciphertext) -> Ciphertext:
        self.gateway.grant(self.contract, value)
        self.gateway.grant(principal, value)
        self._deposits[principal] = value
        return value

    def deposit_of(self, principal: bytes) -> Ciphertext:
        """Encrypted deposit; principals that never bid hold an encrypted zero."""
        if principal not in self._deposits:
            return self._store(principal, self.runtime.as_euint64(0))
        return self._deposits[principal]

    def has_deposit(self, principal: bytes) -> bool:
        return principal in self._deposits

    @property
    def revenue(self) -> Ciphertext:
        """Encrypted sum of all settlement charges not yet claimed."""
        if self._revenue is None:
            self._set_revenue(self.runtime.as_euint64(0))
        return self._revenue

    def _set_revenue(self, value: Ciphertext) -> None:
        self.gateway.grant(self.contract, value)
        self.gateway.grant(self.owner, value)
        self._revenue = value

    # =========================================================================
    # Operations
    # =========================================================================

    def deposit(self, principal: bytes, amount: Ciphertext) -> Ciphertext:
        """
        Pull ``amount`` from the token and credit it to ``principal``.

        The token must hold an allowance from ``principal`` to this contract.
        Token failures propagate; nothing is credited in that case.

        Returns:
            The new encrypted deposit
        """
        self.gateway.grant(self.contract, amount)
        self.token.transfer_from(self.contract, principal, self.contract, amount)

        updated = self._store(principal, self.runtime.add(self.deposit_of(principal), amount))
        self.deposit_count += 1
        logger.debug(f"Deposit credited to {short_hex(principal)}")
        return updated

    def charge(self, principal: bytes, amount: Ciphertext) -> Ciphertext:
        """
        Move ``amount`` from the deposit of ``principal`` into revenue.

        ``amount`` must not exceed the current deposit (caller's guarantee).
        """
        updated = self._store(principal, self.runtime.sub(self.deposit_of(principal), amount))
        self._set_revenue(self.runtime.add(self.revenue, amount))
        return updated

    def withdraw(self, principal: bytes) -> Ciphertext:
        """
        Return the full deposit of ``principal`` through the token.

        Withdrawing again without a new deposit moves an encrypted zero.

        Returns:
            The encrypted amount transferred
        """
        amount = self.deposit_of(principal)
        self.token.transfer(self.contract, principal, amount)
        self._store(principal, self.runtime.as_euint64(0))
        self.withdrawal_count += 1
        logger.debug(f"Withdrawal by {short_hex(principal)}")
        return amount

    def claim_revenue(self, caller: bytes) -> Ciphertext:
        """
        Pay the revenue pool out to the owner.

        Raises:
            NotOwner: If caller is not the auction owner
        """
        if caller != self.owner:
            raise NotOwner(f"Only the auction owner may claim revenue, not {short_hex(caller)}")

        amount = self.revenue
        self.token.transfer(self.contract, self.owner, amount)
        self._set_revenue(self.runtime.as_euint64(0))
        logger.info("Revenue claimed by owner")
        return amount

    # =========================================================================
    # Transition support
    # =========================================================================

    def snapshot(self) -> tuple:
        return dict(self._deposits), self._revenue, self.deposit_count, self.withdrawal_count

    def restore(self, snapshot: tuple) -> None:
        deposits, self._revenue, self.deposit_count, self.withdrawal_count = snapshot
        self._deposits = dict(deposits)

    def __len__(self) -> int:
        return len(self._deposits)
