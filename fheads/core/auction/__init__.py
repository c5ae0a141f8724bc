"""
Auction Module.

This module provides the confidential ads auction:
- Escrow ledger for encrypted deposits
- Bid book of encrypted weight vectors
- Pricing rules
- Homomorphic scoring and private winner selection
- Access gateway for decryption grants
- The AdsAuction entry points
"""

from fheads.core.auction.gateway import AccessGateway
from fheads.core.auction.escrow import EscrowLedger
from fheads.core.auction.bid_book import BidBook, BidRecord
from fheads.core.auction.pricing import (
    FoldOutcome,
    PricingRule,
    FirstPriceRule,
    SecondPriceRule,
    FixedPriceRule,
    FreeRule,
    make_pricing_rule,
)
from fheads.core.auction.selector import WinnerSelector, SettlementRecord
from fheads.core.auction.engine import AdsAuction, TransitionReceipt

__all__ = [
    "AccessGateway",
    "EscrowLedger",
    "BidBook",
    "BidRecord",
    "FoldOutcome",
    "PricingRule",
    "FirstPriceRule",
    "SecondPriceRule",
    "FixedPriceRule",
    "FreeRule",
    "make_pricing_rule",
    "WinnerSelector",
    "SettlementRecord",
    "AdsAuction",
    "TransitionReceipt",
]
