"""
Winner Selector - homomorphic scoring and private argmax.

Algorithm:
---------
For a query q and every bidder p, in insertion order:

    score(p) = sum_i weights[p][i] * q[i]

then a left fold over the scores keeps (best, second, winner) as
ciphertexts:

    is_better = score(p) > best              # encrypted bool
    second    = select(is_better, best, max(second, score(p)))
    best      = select(is_better, score(p), best)
    winner    = select(is_better, p, winner)

The comparison is strict, so the first bidder to reach the maximum keeps
it. Every bidder is visited and every step does the same operations;
nothing branches on an encrypted value and nothing stops early.

Settlement charges every bidder:

    charge(p) = select(winner == p, min(price, deposit(p)), 0)

which moves the price out of the winner's deposit without revealing who
that is and without ever exceeding a deposit.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from fheads.core.auction.bid_book import BidBook, BidRecord
from fheads.core.auction.escrow import EscrowLedger
from fheads.core.auction.gateway import AccessGateway
from fheads.core.auction.pricing import FoldOutcome, PricingRule
from fheads.core.errors import EmptyAuction, NoSettlement
from fheads.core.fhe import Ciphertext, CiphertextRuntime, ExternalInput
from fheads.crypto import short_hex
from fheads.utils.logger import get_logger

logger = get_logger("selector")


@dataclass(frozen=True)
class SettlementRecord:
    """Latest winner computed for a requester."""
    requester: bytes
    winner: Ciphertext
    bidder_count: int
    settled_at: int


class WinnerSelector:
    """
    Scores bids against a query and settles the winner's escrow.

    Attributes:
        pricing_rule: Policy producing the winner's encrypted price
    """

    def __init__(
        self,
        runtime: CiphertextRuntime,
        bid_book: BidBook,
        escrow: EscrowLedger,
        gateway: AccessGateway,
        pricing_rule: PricingRule,
        contract: bytes,
    ):
        self.runtime = runtime
        self.bid_book = bid_book
        self.escrow = escrow
        self.gateway = gateway
        self.pricing_rule = pricing_rule
        self.contract = contract

        self._settlements: Dict[bytes, SettlementRecord] = {}

    # =========================================================================
    # Scoring
    # =========================================================================

    def score(self, weights: Sequence[Ciphertext], query: Sequence[Ciphertext]) -> Ciphertext:
        """Encrypted dot product: K multiplications, K-1 additions."""
        products = [self.runtime.mul(w, q) for w, q in zip(weights, query)]
        total = products[0]
        for product in products[1:]:
            total = self.runtime.add(total, product)
        return total

    def fold(self, scores: Sequence[Tuple[bytes, Ciphertext]]) -> FoldOutcome:
        """
        Private argmax over (bidder, score) pairs in insertion order.

        Raises:
            EmptyAuction: If ``scores`` is empty
        """
        if not scores:
            raise EmptyAuction("No bidders to select from")

        first, best = scores[0]
        winner = self.runtime.as_eaddress(first)
        second = self.runtime.as_euint64(0)

        for bidder, candidate in scores[1:]:
            is_better = self.runtime.gt(candidate, best)
            second = self.runtime.select(is_better, best, self.runtime.max(second, candidate))
            best = self.runtime.select(is_better, candidate, best)
            winner = self.runtime.select(is_better, self.runtime.as_eaddress(bidder), winner)

        return FoldOutcome(winner=winner, best_score=best, second_score=second, scores=tuple(scores))

    # =========================================================================
    # Settlement
    # =========================================================================

    def settle(self, outcome: FoldOutcome, query: Sequence[Ciphertext], bids: Sequence[BidRecord]) -> None:
        """Charge the winner its capped price; everyone else is charged zero."""
        price = self.pricing_rule.price(self.runtime, outcome, query, bids)
        zero = self.runtime.as_euint64(0)

        for record in bids:
            capped = self.runtime.min(price, self.escrow.deposit_of(record.owner))
            is_winner = self.runtime.eq(outcome.winner, record.owner)
            self.escrow.charge(record.owner, self.runtime.select(is_winner, capped, zero))

    def compute_ad_provider(self, requester: bytes, query: Sequence[ExternalInput]) -> Ciphertext:
        """
        Select the best-scoring bidder for ``query`` and settle.

        Only ``requester`` is granted decryption of the result.

        Args:
            requester: Advertiser submitting the query
            query: K encrypted query weights

        Returns:
            eaddress handle of the winner

        Raises:
            EmptyAuction: If nobody has bid
            ProofVerificationFailed: If a query proof is rejected
        """
        if len(self.bid_book) == 0:
            raise EmptyAuction("computeAdProvider called before any bid")

        clamped = self.bid_book.verify_vector(requester, query, "query")
        bids = self.bid_book.records()

        scores = [(record.owner, self.score(record.weights, clamped)) for record in bids]
        outcome = self.fold(scores)

        self.settle(outcome, clamped, bids)

        self.gateway.grant(self.contract, outcome.winner)
        self.gateway.grant(requester, outcome.winner)
        self._settlements[requester] = SettlementRecord(
            requester=requester,
            winner=outcome.winner,
            bidder_count=len(bids),
            settled_at=int(time.time()),
        )

        logger.info(f"Settled query from {short_hex(requester)} over {len(bids)} bidder(s) "
                    f"({self.pricing_rule.name})")
        return outcome.winner

    # =========================================================================
    # Queries
    # =========================================================================

    def settlement_for(self, requester: bytes) -> Optional[SettlementRecord]:
        return self._settlements.get(requester)

    def get_ad_provider(self, requester: bytes) -> Ciphertext:
        """
        Latest winner handle for ``requester``.

        Raises:
            NoSettlement: If ``requester`` never ran a query
        """
        record = self._settlements.get(requester)
        if record is None:
            raise NoSettlement(requester)
        return record.winner

    @property
    def settlements(self) -> List[SettlementRecord]:
        return list(self._settlements.values())

    # =========================================================================
    # Transition support
    # =========================================================================

    def snapshot(self) -> dict:
        return dict(self._settlements)

    def restore(self, snapshot: dict) -> None:
        self._settlements = dict(snapshot)
