"""
Unit tests for pricing rules.
"""

import pytest

from fheads.core.auction import (
    FirstPriceRule,
    FixedPriceRule,
    FoldOutcome,
    FreeRule,
    PricingRule,
    SecondPriceRule,
    make_pricing_rule,
)
from fheads.core.errors import ConfigError
from fheads.core.fhe import MockRuntime
from fheads.crypto import generate_keypair


@pytest.fixture
def runtime():
    return MockRuntime()


@pytest.fixture
def outcome(runtime):
    winner = generate_keypair().address
    return FoldOutcome(
        winner=runtime.as_eaddress(winner),
        best_score=runtime.as_euint64(900),
        second_score=runtime.as_euint64(400),
        scores=(),
    )


class TestRules:
    """Tests for the price each rule produces."""

    def test_first_price(self, runtime, outcome):
        price = FirstPriceRule().price(runtime, outcome, [], [])
        assert runtime.debug_decrypt(price) == 900

    def test_second_price(self, runtime, outcome):
        price = SecondPriceRule().price(runtime, outcome, [], [])
        assert runtime.debug_decrypt(price) == 400

    def test_fixed_price(self, runtime, outcome):
        price = FixedPriceRule(amount=75).price(runtime, outcome, [], [])
        assert runtime.debug_decrypt(price) == 75

    def test_free(self, runtime, outcome):
        assert runtime.debug_decrypt(FreeRule().price(runtime, outcome, [], [])) == 0


class TestFactory:
    """Tests for make_pricing_rule."""

    @pytest.mark.parametrize("name", ["first-price", "second-price", "fixed", "free"])
    def test_known_names(self, name):
        rule = make_pricing_rule(name)
        assert rule.name == name
        assert isinstance(rule, PricingRule)

    def test_fixed_uses_configured_amount(self):
        rule = make_pricing_rule("fixed", fixed_price=42)
        assert rule.amount == 42

    def test_unknown_name_rejected(self):
        with pytest.raises(ConfigError):
            make_pricing_rule("vickrey-clarke-groves")
