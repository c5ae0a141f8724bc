"""
Bid Book - encrypted weight vectors and the bidder set.

A bid carries K encrypted criterion weights plus an encrypted deposit.
Weights are last-bid-wins: a new bid replaces the whole vector and no
history is kept. Deposits accumulate in the escrow ledger.

The bidder set is append-only and ordered by first bid. Insertion order is
the only total order available to break score ties, and nobody can decide
in the clear whether a bidder should be pruned, so bidders are never
removed (a withdrawn bidder stays with stale weights and a zero deposit).
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Set, Tuple

from fheads.core.auction.escrow import EscrowLedger
from fheads.core.fhe import Ciphertext, CiphertextRuntime, ExternalInput, FheType
from fheads.crypto import short_hex
from fheads.utils.logger import get_logger
from fheads.utils.validation import require, validate_vector_length

logger = get_logger("bids")


@dataclass(frozen=True)
class BidRecord:
    """One bidder's view in the book: weights plus current escrow deposit."""
    owner: bytes
    weights: Tuple[Ciphertext, ...]
    deposit: Ciphertext


class BidBook:
    """
    Per-bidder encrypted weights and the append-only bidder sequence.

    Attributes:
        num_criteria: K, the length of every weight vector
        max_weight: Ceiling each weight is clamped to
        max_deposit: Ceiling each bid's deposit is clamped to
    """

    def __init__(
        self,
        runtime: CiphertextRuntime,
        escrow: EscrowLedger,
        contract: bytes,
        num_criteria: int,
        max_weight: int,
        max_deposit: int,
    ):
        self.runtime = runtime
        self.escrow = escrow
        self.contract = contract
        self.num_criteria = num_criteria
        self.max_weight = max_weight
        self.max_deposit = max_deposit

        self._weights: Dict[bytes, Tuple[Ciphertext, ...]] = {}
        self._bidders: List[bytes] = []
        self._members: Set[bytes] = set()

    # =========================================================================
    # Intake
    # =========================================================================

    def verify_vector(self, user: bytes, inputs: Sequence[ExternalInput], name: str) -> List[Ciphertext]:
        """Verify K external weights and clamp them to ``max_weight``."""
        require(validate_vector_length(inputs, name, self.num_criteria))
        verified = [
            self.runtime.verify_input(ext, FheType.EUINT64, self.contract, user)
            for ext in inputs
        ]
        return [self.runtime.min(w, self.max_weight) for w in verified]

    def bid(
        self,
        principal: bytes,
        weights: Sequence[ExternalInput],
        deposit_amount: ExternalInput,
    ) -> BidRecord:
        """
        Register or replace the weights of ``principal`` and add to its deposit.

        Every proof is verified before the deposit is pulled, and the pull
        happens before any book entry changes.

        Args:
            principal: Bidder address
            weights: K encrypted criterion weights
            deposit_amount: Encrypted amount to pull into escrow

        Returns:
            The bidder's record after the bid
        """
        clamped = tuple(self.verify_vector(principal, weights, "weights"))
        amount = self.runtime.verify_input(deposit_amount, FheType.EUINT64, self.contract, principal)
        amount = self.runtime.min(amount, self.max_deposit)

        self.escrow.deposit(principal, amount)

        for w in clamped:
            self.runtime.allow(w, self.contract)
        self._weights[principal] = clamped

        if principal not in self._members:
            self._members.add(principal)
            self._bidders.append(principal)
            logger.info(f"New bidder {short_hex(principal)} (#{len(self._bidders)})")
        else:
            logger.debug(f"Bidder {short_hex(principal)} replaced weights")

        return self.record(principal)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def bidders(self) -> Tuple[bytes, ...]:
        """Bidders in insertion order."""
        return tuple(self._bidders)

    def weights_of(self, principal: bytes) -> Tuple[Ciphertext, ...]:
        return self._weights[principal]

    def record(self, principal: bytes) -> BidRecord:
        return BidRecord(
            owner=principal,
            weights=self._weights[principal],
            deposit=self.escrow.deposit_of(principal),
        )

    def records(self) -> List[BidRecord]:
        """All records in insertion order."""
        return [self.record(p) for p in self._bidders]

    def __contains__(self, principal: bytes) -> bool:
        return principal in self._members

    def __len__(self) -> int:
        return len(self._bidders)

    # =========================================================================
    # Transition support
    # =========================================================================

    def snapshot(self) -> tuple:
        return dict(self._weights), list(self._bidders)

    def restore(self, snapshot: tuple) -> None:
        weights, bidders = snapshot
        self._weights = dict(weights)
        self._bidders = list(bidders)
        self._members = set(bidders)
