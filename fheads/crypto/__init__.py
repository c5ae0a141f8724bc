"""
Cryptographic primitives for the FHE ads auction.

This module provides:
- Hashing (SHA-256, Keccak-256)
- secp256k1 keypairs and ECDSA signatures
- Account and contract address derivation
- Ciphertext handle derivation

Design Notes:
-------------
Principals are Ethereum-style 20-byte addresses so that an encrypted
address (``eaddress``) carries the same payload a real fhEVM deployment
would. Keccak-256 is used for address and handle derivation.

ECDSA is used by the ciphertext runtime's coprocessor to attest encrypted
inputs: an input proof is a signature over the handles and the
(contract, user) context they were encrypted for.
"""

import hashlib
import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ADDRESS_SIZE = 20
HANDLE_SIZE = 32
SIGNATURE_SIZE = 64

ZERO_ADDRESS = bytes(ADDRESS_SIZE)


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """Compute SHA-256 hash."""
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for address derivation, handle derivation and proof digests.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Keys and Addresses
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key
        public_key: 64-byte uncompressed public key (x || y)
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> bytes:
        """20-byte account address derived from the public key."""
        return address_from_public_key(self.public_key)


def generate_keypair() -> KeyPair:
    """Generate a new random keypair."""
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def private_key_to_public_key(private_key: bytes) -> bytes:
    """Derive the 64-byte public key from a 32-byte private key."""
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    x, y = secp256k1.privtopub(private_key)
    return x.to_bytes(32, byteorder="big") + y.to_bytes(32, byteorder="big")


def address_from_public_key(public_key: bytes) -> bytes:
    """Address = last 20 bytes of keccak256(public_key)."""
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return keccak256(public_key)[-ADDRESS_SIZE:]


def derive_contract_address(deployer: bytes, nonce: int) -> bytes:
    """
    Derive a deterministic contract address from its deployer.

    A simplified CREATE rule: keccak256(deployer || nonce)[-20:].
    """
    return keccak256(deployer + nonce.to_bytes(8, byteorder="big"))[-ADDRESS_SIZE:]


def derive_handle(*parts: bytes) -> bytes:
    """Derive a 32-byte ciphertext handle from domain-separated parts."""
    return keccak256(b"".join(len(p).to_bytes(2, "big") + p for p in parts))


# =============================================================================
# Digital Signatures (ECDSA)
# =============================================================================


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a 32-byte message hash with ECDSA on secp256k1.

    Returns:
        65-byte signature (r || s || v); py_ecc already emits low-s
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    v, r, s = secp256k1.ecdsa_raw_sign(message_hash, private_key)
    return r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v])


def verify(message_hash: bytes, signature: bytes, public_key: bytes) -> bool:
    """
    Verify an ECDSA signature produced by :func:`sign`.

    Returns:
        True if the signature recovers to ``public_key``
    """
    if len(message_hash) != 32 or len(signature) != SIGNATURE_SIZE + 1 or len(public_key) != 64:
        return False

    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    v = signature[64]

    if not (1 <= r < SECP256K1_ORDER and 1 <= s < SECP256K1_ORDER):
        return False
    if v not in (27, 28):
        return False

    expected = (
        int.from_bytes(public_key[:32], "big"),
        int.from_bytes(public_key[32:], "big"),
    )
    try:
        recovered = secp256k1.ecdsa_raw_recover(message_hash, (v, r, s))
    except (ValueError, ZeroDivisionError):
        return False
    return recovered == expected


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def short_hex(data: bytes, length: int = 10) -> str:
    """Abbreviated hex for log lines."""
    return bytes_to_hex(data)[:length] + "..."


def is_valid_address(address: str) -> bool:
    """Check if string is a valid 0x-prefixed address."""
    if not address.startswith("0x"):
        return False
    if len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False
