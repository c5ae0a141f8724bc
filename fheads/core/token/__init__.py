"""Confidential token consumed by the auction escrow"""
from fheads.core.token.confidential_erc20 import ConfidentialERC20, ConfidentialToken

__all__ = [
    "ConfidentialERC20",
    "ConfidentialToken",
]
