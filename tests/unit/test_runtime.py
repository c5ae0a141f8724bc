"""
Unit tests for the mock ciphertext runtime.

Tests cover:
1. Encrypted inputs and proof verification
2. Homomorphic arithmetic and uint64 wrap-around
3. Comparison and selection
4. Access control and decryption
5. FHE gas metering
"""

import pytest

from fheads.core.errors import AccessDenied, ProofVerificationFailed
from fheads.core.fhe import (
    AccessControlList,
    Ciphertext,
    CiphertextRuntime,
    ExternalInput,
    FheType,
    GasMeter,
    MockRuntime,
)
from fheads.core.fhe.gas import FALLBACK_COST
from fheads.crypto import generate_keypair


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def runtime():
    return MockRuntime()


@pytest.fixture
def contract():
    return generate_keypair().address


@pytest.fixture
def user():
    return generate_keypair().address


def encrypt64(runtime, contract, user, *values):
    builder = runtime.create_encrypted_input(contract, user)
    for value in values:
        builder.add64(value)
    return builder.encrypt()


# =============================================================================
# Encrypted Inputs
# =============================================================================


class TestEncryptedInputs:
    """Tests for client-side inputs and verify_input."""

    def test_runtime_satisfies_protocol(self, runtime):
        assert isinstance(runtime, CiphertextRuntime)

    def test_bundle_shares_one_proof(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 1, 2, 3)
        assert len(bundle.handles) == 3
        assert len(set(bundle.handles)) == 3
        assert all(ext.input_proof == bundle.input_proof for ext in bundle.inputs())

    def test_verify_input_returns_typed_ciphertext(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 42)
        ct = runtime.verify_input(bundle.input(0), FheType.EUINT64, contract, user)
        assert ct.fhe_type == FheType.EUINT64
        assert runtime.debug_decrypt(ct) == 42

    def test_verify_input_grants_contract(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 42)
        ct = runtime.verify_input(bundle.input(0), FheType.EUINT64, contract, user)
        assert runtime.is_allowed(ct, contract)
        assert not runtime.is_allowed(ct, user)

    def test_wrong_contract_rejected(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 42)
        other = generate_keypair().address
        with pytest.raises(ProofVerificationFailed):
            runtime.verify_input(bundle.input(0), FheType.EUINT64, other, user)

    def test_wrong_user_rejected(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 42)
        other = generate_keypair().address
        with pytest.raises(ProofVerificationFailed):
            runtime.verify_input(bundle.input(0), FheType.EUINT64, contract, other)

    def test_type_mismatch_rejected(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 42)
        with pytest.raises(ProofVerificationFailed, match="expected EADDRESS"):
            runtime.verify_input(bundle.input(0), FheType.EADDRESS, contract, user)

    def test_handle_not_covered_rejected(self, runtime, contract, user):
        first = encrypt64(runtime, contract, user, 1)
        second = encrypt64(runtime, contract, user, 2)
        spliced = ExternalInput(handle=second.handles[0], input_proof=first.input_proof)
        with pytest.raises(ProofVerificationFailed, match="not covered"):
            runtime.verify_input(spliced, FheType.EUINT64, contract, user)

    def test_truncated_proof_rejected(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 1)
        broken = ExternalInput(handle=bundle.handles[0], input_proof=bundle.input_proof[:-1])
        with pytest.raises(ProofVerificationFailed, match="malformed"):
            runtime.verify_input(broken, FheType.EUINT64, contract, user)

    def test_forged_signature_rejected(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 1)
        proof = bytearray(bundle.input_proof)
        proof[-10] ^= 0x01
        forged = ExternalInput(handle=bundle.handles[0], input_proof=bytes(proof))
        with pytest.raises(ProofVerificationFailed):
            runtime.verify_input(forged, FheType.EUINT64, contract, user)

    def test_proof_from_other_coprocessor_rejected(self, contract, user):
        rogue = MockRuntime()
        honest = MockRuntime()
        bundle = encrypt64(rogue, contract, user, 1)
        with pytest.raises(ProofVerificationFailed):
            honest.verify_input(bundle.input(0), FheType.EUINT64, contract, user)

    def test_bad_handle_length_rejected(self, runtime, contract, user):
        bundle = encrypt64(runtime, contract, user, 1)
        with pytest.raises(ProofVerificationFailed):
            runtime.verify_input(ExternalInput(b"\x00" * 5, bundle.input_proof), FheType.EUINT64, contract, user)

    def test_add64_range_checked(self, runtime, contract, user):
        builder = runtime.create_encrypted_input(contract, user)
        with pytest.raises(ValueError):
            builder.add64(2**64)
        with pytest.raises(ValueError):
            builder.add64(-1)

    def test_empty_input_rejected(self, runtime, contract, user):
        with pytest.raises(ValueError):
            runtime.create_encrypted_input(contract, user).encrypt()

    def test_address_and_bool_inputs(self, runtime, contract, user):
        target = generate_keypair().address
        bundle = runtime.create_encrypted_input(contract, user).add_address(target).add_bool(True).encrypt()
        addr = runtime.verify_input(bundle.input(0), FheType.EADDRESS, contract, user)
        flag = runtime.verify_input(bundle.input(1), FheType.EBOOL, contract, user)
        assert runtime.debug_decrypt(addr) == target
        assert runtime.debug_decrypt(flag) is True


# =============================================================================
# Arithmetic
# =============================================================================


class TestArithmetic:
    """Tests for add/sub/mul/min/max."""

    def test_add_ciphertexts(self, runtime):
        a, b = runtime.as_euint64(3), runtime.as_euint64(4)
        assert runtime.debug_decrypt(runtime.add(a, b)) == 7

    def test_scalar_operands(self, runtime):
        a = runtime.as_euint64(10)
        assert runtime.debug_decrypt(runtime.add(a, 5)) == 15
        assert runtime.debug_decrypt(runtime.sub(a, 4)) == 6
        assert runtime.debug_decrypt(runtime.mul(a, 3)) == 30

    def test_sub_wraps_mod_2_64(self, runtime):
        one = runtime.as_euint64(1)
        assert runtime.debug_decrypt(runtime.sub(one, 2)) == 2**64 - 1

    def test_mul_wraps_mod_2_64(self, runtime):
        big = runtime.as_euint64(2**63)
        assert runtime.debug_decrypt(runtime.mul(big, 2)) == 0

    def test_min_max(self, runtime):
        a, b = runtime.as_euint64(3), runtime.as_euint64(9)
        assert runtime.debug_decrypt(runtime.min(a, b)) == 3
        assert runtime.debug_decrypt(runtime.max(a, b)) == 9
        assert runtime.debug_decrypt(runtime.min(b, 5)) == 5

    def test_results_get_fresh_handles(self, runtime):
        a, b = runtime.as_euint64(1), runtime.as_euint64(2)
        assert runtime.add(a, b).handle != runtime.add(a, b).handle

    def test_arithmetic_on_address_rejected(self, runtime):
        addr = runtime.as_eaddress(generate_keypair().address)
        with pytest.raises(TypeError):
            runtime.add(addr, 1)

    def test_operand_type_mismatch_rejected(self, runtime):
        a = runtime.as_euint64(1)
        flag = runtime.as_ebool(True)
        with pytest.raises(TypeError):
            runtime.add(a, flag)

    def test_bool_scalar_rejected_for_uint(self, runtime):
        with pytest.raises(TypeError):
            runtime.add(runtime.as_euint64(1), True)

    def test_unknown_handle_rejected(self, runtime):
        ghost = Ciphertext(handle=b"\x01" * 32, fhe_type=FheType.EUINT64)
        with pytest.raises(ValueError, match="Unknown"):
            runtime.add(ghost, 1)

    def test_mistyped_handle_rejected(self, runtime):
        a = runtime.as_euint64(1)
        relabeled = Ciphertext(handle=a.handle, fhe_type=FheType.EBOOL)
        with pytest.raises(TypeError):
            runtime.debug_decrypt(relabeled)


# =============================================================================
# Comparison and Selection
# =============================================================================


class TestComparison:
    """Tests for gt/ge/lt/eq and select."""

    def test_comparisons_return_ebool(self, runtime):
        a, b = runtime.as_euint64(5), runtime.as_euint64(3)
        result = runtime.gt(a, b)
        assert result.fhe_type == FheType.EBOOL
        assert runtime.debug_decrypt(result) is True
        assert runtime.debug_decrypt(runtime.gt(b, a)) is False
        assert runtime.debug_decrypt(runtime.ge(a, 5)) is True
        assert runtime.debug_decrypt(runtime.lt(b, a)) is True

    def test_gt_is_strict(self, runtime):
        a, b = runtime.as_euint64(5), runtime.as_euint64(5)
        assert runtime.debug_decrypt(runtime.gt(a, b)) is False

    def test_eq_on_addresses_with_scalar(self, runtime):
        target = generate_keypair().address
        addr = runtime.as_eaddress(target)
        assert runtime.debug_decrypt(runtime.eq(addr, target)) is True
        assert runtime.debug_decrypt(runtime.eq(addr, generate_keypair().address)) is False

    def test_gt_on_addresses_rejected(self, runtime):
        addr = runtime.as_eaddress(generate_keypair().address)
        with pytest.raises(TypeError):
            runtime.gt(addr, addr)

    def test_select(self, runtime):
        a, b = runtime.as_euint64(1), runtime.as_euint64(2)
        assert runtime.debug_decrypt(runtime.select(runtime.as_ebool(True), a, b)) == 1
        assert runtime.debug_decrypt(runtime.select(runtime.as_ebool(False), a, b)) == 2

    def test_select_on_addresses(self, runtime):
        p, q = generate_keypair().address, generate_keypair().address
        chosen = runtime.select(runtime.as_ebool(False), runtime.as_eaddress(p), runtime.as_eaddress(q))
        assert chosen.fhe_type == FheType.EADDRESS
        assert runtime.debug_decrypt(chosen) == q

    def test_select_requires_ebool_condition(self, runtime):
        a = runtime.as_euint64(1)
        with pytest.raises(TypeError):
            runtime.select(a, a, a)

    def test_select_branch_mismatch_rejected(self, runtime):
        cond = runtime.as_ebool(True)
        with pytest.raises(TypeError):
            runtime.select(cond, runtime.as_euint64(1), runtime.as_eaddress(generate_keypair().address))


# =============================================================================
# Access Control
# =============================================================================


class TestAccessControl:
    """Tests for the ACL and decrypt()."""

    def test_decrypt_without_grant_denied(self, runtime, user):
        ct = runtime.as_euint64(7)
        with pytest.raises(AccessDenied):
            runtime.decrypt(user, ct)

    def test_decrypt_after_grant(self, runtime, user):
        ct = runtime.as_euint64(7)
        runtime.allow(ct, user)
        assert runtime.decrypt(user, ct) == 7

    def test_grant_is_per_handle(self, runtime, user):
        ct = runtime.as_euint64(7)
        runtime.allow(ct, user)
        derived = runtime.add(ct, 1)
        with pytest.raises(AccessDenied):
            runtime.decrypt(user, derived)

    def test_allow_is_idempotent(self, runtime, user):
        ct = runtime.as_euint64(7)
        assert runtime.allow(ct, user) is True
        assert runtime.allow(ct, user) is False
        assert len(runtime.acl) == 1

    def test_acl_rollback(self):
        acl = AccessControlList()
        acl.allow(b"h1", b"p")
        checkpoint = acl.checkpoint()
        acl.allow(b"h2", b"p")
        acl.allow(b"h1", b"p")  # existing, not journaled again

        assert acl.rollback(checkpoint) == 1
        assert acl.is_allowed(b"h1", b"p")
        assert not acl.is_allowed(b"h2", b"p")

    def test_grants_for_in_order(self):
        acl = AccessControlList()
        acl.allow(b"h1", b"p")
        acl.allow(b"h2", b"q")
        acl.allow(b"h3", b"p")
        assert acl.grants_for(b"p") == [b"h1", b"h3"]


# =============================================================================
# Gas Metering
# =============================================================================


class TestGasMetering:
    """Tests for FHE gas accounting."""

    def test_operations_charge_gas(self, runtime):
        a, b = runtime.as_euint64(1), runtime.as_euint64(2)
        start = runtime.gas_meter.reading()
        runtime.mul(a, b)
        used = runtime.gas_meter.since(start)
        assert used.total == runtime.gas_meter.cost_of("mul", FheType.EUINT64)
        assert used.op_count == 1

    def test_scalar_cheaper_than_ciphertext(self):
        meter = GasMeter()
        assert meter.cost_of("mul", FheType.EUINT64, scalar=True) < meter.cost_of("mul", FheType.EUINT64)

    def test_fallback_cost(self):
        meter = GasMeter()
        assert meter.charge("shl", FheType.EUINT64) == FALLBACK_COST
        assert meter.ops["shl"] == 1

    def test_stats(self, runtime):
        runtime.as_euint64(1)
        stats = runtime.stats()
        assert stats["ciphertexts"] == 1
        assert stats["ops"]["trivial"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
