"""
Pricing - how much the winner pays at settlement.

A pricing rule turns the encrypted fold outcome into an encrypted price.
The selector then charges ``min(price, deposit)`` to the winner and an
encrypted zero to everyone else, so a rule never needs to know who won and
can never overdraw a deposit.

Rules:
- first-price: the winner's own score
- second-price: the runner-up score (zero with a single bidder)
- fixed: a configured public amount
- free: nothing
"""

from dataclasses import dataclass
from typing import Dict, Protocol, Sequence, Tuple, runtime_checkable

from fheads.core.auction.bid_book import BidRecord
from fheads.core.errors import ConfigError
from fheads.core.fhe import Ciphertext, CiphertextRuntime


@dataclass
class FoldOutcome:
    """
    Encrypted result of the argmax fold.

    Attributes:
        winner: eaddress of the highest scorer (earliest on ties)
        best_score: Winner's score
        second_score: Highest score among the others (ties count)
        scores: (bidder, score) in insertion order
    """
    winner: Ciphertext
    best_score: Ciphertext
    second_score: Ciphertext
    scores: Tuple[Tuple[bytes, Ciphertext], ...]


@runtime_checkable
class PricingRule(Protocol):
    """Computes the encrypted price charged to the winner."""
    name: str

    def price(
        self,
        runtime: CiphertextRuntime,
        outcome: FoldOutcome,
        query: Sequence[Ciphertext],
        bids: Sequence[BidRecord],
    ) -> Ciphertext: ...


class FirstPriceRule:
    """Winner pays its own score."""
    name = "first-price"

    def price(self, runtime, outcome, query, bids):
        return outcome.best_score


class SecondPriceRule:
    """Winner pays the runner-up score."""
    name = "second-price"

    def price(self, runtime, outcome, query, bids):
        return outcome.second_score


@dataclass
class FixedPriceRule:
    """Winner pays a public constant."""
    amount: int
    name: str = "fixed"

    def price(self, runtime, outcome, query, bids):
        return runtime.as_euint64(self.amount)


class FreeRule:
    name = "free"

    def price(self, runtime, outcome, query, bids):
        return runtime.as_euint64(0)


_RULES: Dict[str, type] = {
    FirstPriceRule.name: FirstPriceRule,
    SecondPriceRule.name: SecondPriceRule,
    FreeRule.name: FreeRule,
}


def make_pricing_rule(name: str, fixed_price: int = 0) -> PricingRule:
    """
    Build a rule from its config name.

    Raises:
        ConfigError: For unknown names
    """
    if name == "fixed":
        return FixedPriceRule(amount=fixed_price)
    if name not in _RULES:
        raise ConfigError(f"Unknown pricing rule: {name}")
    return _RULES[name]()
