"""
Error taxonomy for the auction engine and its collaborators.

Every error raised inside an entry point aborts the whole transition; the
engine restores its prior state before the exception reaches the caller.
"""

from typing import Optional


class FHEAdsError(Exception):
    """Base class for all auction errors."""


class ProofVerificationFailed(FHEAdsError):
    """An external ciphertext's input proof is malformed or does not match."""

    def __init__(self, reason: str, handle: Optional[bytes] = None):
        self.reason = reason
        self.handle = handle
        super().__init__(f"Input proof rejected: {reason}")


class TokenTransferFailed(FHEAdsError):
    """The confidential token refused to move funds."""


class InsufficientAllowance(TokenTransferFailed):
    """A pull-based transfer exceeds the spender's encrypted allowance."""


class InsufficientBalance(TokenTransferFailed):
    """A transfer exceeds the sender's encrypted balance."""


class NoSettlement(FHEAdsError):
    """A winner was requested before any settlement for that requester."""

    def __init__(self, requester: bytes):
        self.requester = requester
        super().__init__(f"No settlement recorded for 0x{requester.hex()}")


class AccessDenied(FHEAdsError):
    """Decryption requested by a principal without a grant on the handle."""

    def __init__(self, principal: bytes, handle: bytes):
        self.principal = principal
        self.handle = handle
        super().__init__(f"0x{principal.hex()} may not decrypt handle 0x{handle.hex()[:16]}...")


class EmptyAuction(FHEAdsError):
    """A winner was requested while no bidder has registered."""


class NotOwner(FHEAdsError):
    """An owner-only operation was called by another principal."""


class ConfigError(FHEAdsError):
    """Configuration file or values are invalid."""
