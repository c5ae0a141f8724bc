"""
Unit tests for cryptographic primitives.

Tests cover:
1. Key generation and address derivation
2. Signing and verification
3. Hashing functions
4. Contract address and handle derivation
"""

import pytest

from fheads.crypto import (
    ADDRESS_SIZE,
    HANDLE_SIZE,
    address_from_public_key,
    bytes_to_hex,
    derive_contract_address,
    derive_handle,
    generate_keypair,
    hex_to_bytes,
    is_valid_address,
    keccak256,
    private_key_to_public_key,
    sha256,
    short_hex,
    sign,
    verify,
)


class TestKeyGeneration:
    """Tests for key generation."""

    def test_keypair_lengths(self):
        """KeyPair should have correct field lengths."""
        kp = generate_keypair()
        assert len(kp.private_key) == 32
        assert len(kp.public_key) == 64
        assert len(kp.address) == ADDRESS_SIZE

    def test_keypairs_are_unique(self):
        kp1 = generate_keypair()
        kp2 = generate_keypair()
        assert kp1.private_key != kp2.private_key
        assert kp1.address != kp2.address

    def test_derive_public_key_from_private(self):
        kp = generate_keypair()
        assert private_key_to_public_key(kp.private_key) == kp.public_key

    def test_address_is_keccak_suffix(self):
        kp = generate_keypair()
        assert kp.address == keccak256(kp.public_key)[-20:]

    def test_bad_key_lengths_rejected(self):
        with pytest.raises(ValueError):
            private_key_to_public_key(b"\x01" * 31)
        with pytest.raises(ValueError):
            address_from_public_key(b"\x01" * 63)


class TestSigning:
    """Tests for ECDSA signing."""

    def test_signature_length(self):
        kp = generate_keypair()
        sig = sign(sha256(b"message"), kp.private_key)
        assert len(sig) == 65
        assert sig[64] in (27, 28)

    def test_verify_valid_signature(self):
        kp = generate_keypair()
        msg_hash = sha256(b"message")
        assert verify(msg_hash, sign(msg_hash, kp.private_key), kp.public_key)

    def test_verify_wrong_message_fails(self):
        kp = generate_keypair()
        sig = sign(sha256(b"message"), kp.private_key)
        assert not verify(sha256(b"other"), sig, kp.public_key)

    def test_verify_wrong_key_fails(self):
        kp1 = generate_keypair()
        kp2 = generate_keypair()
        msg_hash = sha256(b"message")
        assert not verify(msg_hash, sign(msg_hash, kp1.private_key), kp2.public_key)

    def test_verify_tampered_signature_fails(self):
        kp = generate_keypair()
        msg_hash = sha256(b"message")
        sig = bytearray(sign(msg_hash, kp.private_key))
        sig[5] ^= 0xFF
        assert not verify(msg_hash, bytes(sig), kp.public_key)

    def test_verify_rejects_bad_lengths(self):
        kp = generate_keypair()
        assert not verify(b"\x00" * 31, b"\x00" * 65, kp.public_key)
        assert not verify(b"\x00" * 32, b"\x00" * 64, kp.public_key)

    def test_sign_rejects_bad_hash(self):
        kp = generate_keypair()
        with pytest.raises(ValueError):
            sign(b"short", kp.private_key)


class TestHashing:
    """Tests for hash functions."""

    def test_sha256_known_vector(self):
        assert sha256(b"").hex() == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_keccak256_known_vector(self):
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )


class TestDerivation:
    """Tests for contract address and handle derivation."""

    def test_contract_address_deterministic(self):
        deployer = generate_keypair().address
        assert derive_contract_address(deployer, 0) == derive_contract_address(deployer, 0)
        assert len(derive_contract_address(deployer, 0)) == ADDRESS_SIZE

    def test_contract_address_depends_on_nonce(self):
        deployer = generate_keypair().address
        assert derive_contract_address(deployer, 0) != derive_contract_address(deployer, 1)

    def test_handle_length(self):
        assert len(derive_handle(b"a", b"b")) == HANDLE_SIZE

    def test_handle_parts_are_length_prefixed(self):
        """Concatenation ambiguity must not produce equal handles."""
        assert derive_handle(b"ab", b"c") != derive_handle(b"a", b"bc")


class TestUtilities:
    """Tests for hex helpers."""

    def test_hex_roundtrip(self):
        data = bytes(range(20))
        assert hex_to_bytes(bytes_to_hex(data)) == data
        assert hex_to_bytes(data.hex()) == data

    def test_is_valid_address(self):
        assert is_valid_address("0x" + "ab" * 20)
        assert not is_valid_address("ab" * 20)
        assert not is_valid_address("0x" + "ab" * 19)
        assert not is_valid_address("0x" + "zz" * 20)

    def test_short_hex(self):
        assert short_hex(bytes(20)) == "0x00000000..."


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
