"""
Input Validation - sanitization of plaintext arguments.

Ciphertexts cannot be range-checked without decryption, so these checks
cover only what the engine sees in the clear: addresses, plaintext token
amounts, vector lengths and proof blobs.
"""

from typing import Any, Optional, Tuple

from fheads.crypto import ADDRESS_SIZE, HANDLE_SIZE

# =============================================================================
# Constants
# =============================================================================

MAX_UINT64 = 2**64 - 1
MAX_PROOF_SIZE = 8192
MAX_CRITERIA = 64


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 20-byte principal address."""
    return validate_bytes(address, name, expected_length=ADDRESS_SIZE)


def validate_handle(handle: Any, name: str = "handle") -> Tuple[bool, str]:
    """Validate a 32-byte ciphertext handle."""
    return validate_bytes(handle, name, expected_length=HANDLE_SIZE)


def validate_proof(proof: Any, name: str = "input_proof") -> Tuple[bool, str]:
    """Validate the outer shape of an input proof blob."""
    return validate_bytes(proof, name, max_length=MAX_PROOF_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: int = 0,
    max_val: int = MAX_UINT64,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any) -> Tuple[bool, str]:
    """Validate a plaintext uint64 token amount."""
    return validate_integer(amount, "amount")


def validate_vector_length(data: Any, name: str, expected_length: int) -> Tuple[bool, str]:
    """Validate that a weight/query vector has exactly K entries."""
    if not isinstance(data, (list, tuple)):
        return False, f"{name} must be list/tuple, got {type(data).__name__}"

    if len(data) != expected_length:
        return False, f"{name} must have {expected_length} entries, got {len(data)}"

    return True, ""


def require(result: Tuple[bool, str]) -> None:
    """Raise ValueError for a failed (is_valid, error) pair."""
    is_valid, error = result
    if not is_valid:
        raise ValueError(error)


__all__ = [
    "MAX_UINT64",
    "MAX_PROOF_SIZE",
    "MAX_CRITERIA",
    "validate_bytes",
    "validate_address",
    "validate_handle",
    "validate_proof",
    "validate_integer",
    "validate_amount",
    "validate_vector_length",
    "require",
]
