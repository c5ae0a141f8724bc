"""
Ciphertext Runtime - homomorphic arithmetic, input proofs and decryption.

Conceptual Background:
---------------------
Contracts never see plaintexts. They hold handles and ask the runtime to
combine them: add, multiply, compare, select. A comparison yields an
encrypted boolean which can only be consumed by ``select``; it is never
branched on.

Values enter the system through client-side encrypted inputs. The client
encrypts a batch of values for a (contract, user) pair and receives a proof
that the coprocessor signed over the resulting handles. A contract accepts
an external handle only after ``verify_input`` checks that proof against
its own address and the calling user.

Values leave the system only through ``decrypt``, which consults the ACL.

Mock Mode:
---------
``MockRuntime`` keeps the plaintext behind every handle in memory, the same
way fhEVM's mocked mode does. Semantics (uint64 wrap-around, typed
operands, ACL enforcement, proof checks, gas) match a real deployment; only
confidentiality against the host process is simulated. Any object
satisfying ``CiphertextRuntime`` can replace it.
"""

from typing import Callable, Dict, List, Optional, Protocol, Set, Tuple, Union, runtime_checkable

from fheads.core.errors import AccessDenied, ProofVerificationFailed
from fheads.core.fhe.acl import AccessControlList
from fheads.core.fhe.gas import GasMeter
from fheads.core.fhe.types import Ciphertext, EncryptedInputBundle, ExternalInput, FheType
from fheads.crypto import (
    ADDRESS_SIZE,
    HANDLE_SIZE,
    SIGNATURE_SIZE,
    KeyPair,
    derive_handle,
    generate_keypair,
    keccak256,
    short_hex,
    sign,
    verify,
)
from fheads.utils.logger import get_logger
from fheads.utils.validation import (
    MAX_UINT64,
    require,
    validate_address,
    validate_handle,
    validate_integer,
    validate_proof,
)

logger = get_logger("fhe")

# Right-hand operand: another ciphertext or a plaintext scalar
Operand = Union[Ciphertext, int, bool, bytes]
Plaintext = Union[int, bool, bytes]

DOMAIN_INPUT = b"fheads.input"
DOMAIN_OP = b"fheads.op"
DOMAIN_PROOF = b"fheads.input-proof"


# =============================================================================
# Runtime Interface
# =============================================================================


@runtime_checkable
class CiphertextRuntime(Protocol):
    """Operations the auction engine and token need from an FHE backend."""
    acl: AccessControlList
    gas_meter: GasMeter

    def verify_input(self, external: ExternalInput, fhe_type: FheType,
                     contract: bytes, user: bytes) -> Ciphertext: ...

    def add(self, a: Ciphertext, b: Operand) -> Ciphertext: ...

    def sub(self, a: Ciphertext, b: Operand) -> Ciphertext: ...

    def mul(self, a: Ciphertext, b: Operand) -> Ciphertext: ...

    def gt(self, a: Ciphertext, b: Operand) -> Ciphertext: ...

    def ge(self, a: Ciphertext, b: Operand) -> Ciphertext: ...

    def eq(self, a: Ciphertext, b: Operand) -> Ciphertext: ...

    def min(self, a: Ciphertext, b: Operand) -> Ciphertext: ...

    def max(self, a: Ciphertext, b: Operand) -> Ciphertext: ...

    def select(self, cond: Ciphertext, a: Ciphertext, b: Ciphertext) -> Ciphertext: ...

    def as_euint64(self, value: int) -> Ciphertext: ...

    def as_eaddress(self, address: bytes) -> Ciphertext: ...

    def allow(self, ct: Ciphertext, principal: bytes) -> bool: ...

    def is_allowed(self, ct: Ciphertext, principal: bytes) -> bool: ...

    def decrypt(self, principal: bytes, ct: Ciphertext) -> Plaintext: ...


# =============================================================================
# Client-side Encrypted Inputs
# =============================================================================


class EncryptedInput:
    """
    Builder for a batch of client-encrypted values.

    Usage:
        bundle = runtime.create_encrypted_input(auction.address, alice)\\
            .add64(1000).add64(2000).encrypt()
        auction.bid(alice, bundle.inputs()[:2], ...)
    """

    MAX_VALUES = 255

    def __init__(self, runtime: "MockRuntime", contract: bytes, user: bytes):
        require(validate_address(contract, "contract"))
        require(validate_address(user, "user"))
        self.runtime = runtime
        self.contract = contract
        self.user = user
        self._values: List[Tuple[FheType, int]] = []

    def _push(self, fhe_type: FheType, value: int) -> "EncryptedInput":
        if len(self._values) >= self.MAX_VALUES:
            raise ValueError(f"An encrypted input holds at most {self.MAX_VALUES} values")
        self._values.append((fhe_type, value))
        return self

    def add_bool(self, value: bool) -> "EncryptedInput":
        return self._push(FheType.EBOOL, 1 if value else 0)

    def add64(self, value: int) -> "EncryptedInput":
        require(validate_integer(value, "value", 0, MAX_UINT64))
        return self._push(FheType.EUINT64, value)

    def add_address(self, address: bytes) -> "EncryptedInput":
        require(validate_address(address))
        return self._push(FheType.EADDRESS, int.from_bytes(address, "big"))

    def encrypt(self) -> EncryptedInputBundle:
        """Register the values with the runtime and obtain the signed proof."""
        if not self._values:
            raise ValueError("Nothing to encrypt")
        return self.runtime._register_input(self.contract, self.user, self._values)


# =============================================================================
# Mock Runtime
# =============================================================================


class MockRuntime:
    """
    Plaintext-backed ciphertext runtime.

    Attributes:
        coprocessor: Keypair that signs input proofs
        acl: Grant table consulted by decrypt() and by token transfers
        gas_meter: FHE gas accounting
    """

    def __init__(self, coprocessor: Optional[KeyPair] = None, gas_meter: Optional[GasMeter] = None):
        self.coprocessor = coprocessor or generate_keypair()
        self.acl = AccessControlList()
        self.gas_meter = gas_meter or GasMeter()

        self._values: Dict[bytes, Tuple[FheType, int]] = {}  # handle -> (type, plaintext)
        self._nonce = 0
        self._verified_proofs: Set[bytes] = set()  # digests with a valid signature

    # =========================================================================
    # Handle bookkeeping
    # =========================================================================

    def _next_nonce(self) -> bytes:
        self._nonce += 1
        return self._nonce.to_bytes(8, "big")

    def _fresh(self, op: str, fhe_type: FheType, value: int, *parents: Operand) -> Ciphertext:
        """Store a new ciphertext; every result gets a new handle."""
        parent_ids = [p.handle for p in parents if isinstance(p, Ciphertext)]
        handle = derive_handle(DOMAIN_OP, op.encode(), self._next_nonce(), *parent_ids)
        self._values[handle] = (fhe_type, value % fhe_type.modulus)
        return Ciphertext(handle=handle, fhe_type=fhe_type)

    def _value(self, ct: Ciphertext) -> int:
        if not isinstance(ct, Ciphertext):
            raise TypeError(f"Expected Ciphertext, got {type(ct).__name__}")
        stored = self._values.get(ct.handle)
        if stored is None:
            raise ValueError(f"Unknown ciphertext handle {short_hex(ct.handle, 14)}")
        fhe_type, value = stored
        if fhe_type != ct.fhe_type:
            raise TypeError(f"Handle holds {fhe_type.name}, not {ct.fhe_type.name}")
        return value

    def _operand(self, b: Operand, fhe_type: FheType) -> Tuple[int, bool]:
        """Resolve a right operand to (plaintext, is_scalar)."""
        if isinstance(b, Ciphertext):
            if b.fhe_type != fhe_type:
                raise TypeError(f"Operand type mismatch: {fhe_type.name} vs {b.fhe_type.name}")
            return self._value(b), False

        if fhe_type == FheType.EADDRESS:
            require(validate_address(b, "scalar"))
            return int.from_bytes(b, "big"), True

        if fhe_type == FheType.EBOOL and isinstance(b, bool):
            return int(b), True

        if isinstance(b, bool) or not isinstance(b, int):
            raise TypeError(f"Scalar for {fhe_type.name} must be int, got {type(b).__name__}")
        require(validate_integer(b, "scalar", 0, fhe_type.modulus - 1))
        return b, True

    @staticmethod
    def _require_type(ct: Ciphertext, fhe_type: FheType, op: str) -> None:
        if not isinstance(ct, Ciphertext):
            raise TypeError(f"{op}: expected Ciphertext, got {type(ct).__name__}")
        if ct.fhe_type != fhe_type:
            raise TypeError(f"{op} requires {fhe_type.name}, got {ct.fhe_type.name}")

    # =========================================================================
    # Encrypted inputs and proofs
    # =========================================================================

    def create_encrypted_input(self, contract: bytes, user: bytes) -> EncryptedInput:
        """Start a client-side batch of values bound to (contract, user)."""
        return EncryptedInput(self, contract, user)

    @staticmethod
    def _proof_digest(contract: bytes, user: bytes, handles: List[bytes], types: bytes) -> bytes:
        return keccak256(DOMAIN_PROOF + contract + user + b"".join(handles) + types)

    def _register_input(
        self,
        contract: bytes,
        user: bytes,
        values: List[Tuple[FheType, int]],
    ) -> EncryptedInputBundle:
        nonce = self._next_nonce()
        handles = []
        for index, (fhe_type, value) in enumerate(values):
            handle = derive_handle(DOMAIN_INPUT, contract, user, nonce, bytes([index, fhe_type]))
            self._values[handle] = (fhe_type, value)
            handles.append(handle)

        types = bytes(fhe_type for fhe_type, _ in values)
        signature = sign(self._proof_digest(contract, user, handles, types), self.coprocessor.private_key)
        proof = bytes([len(handles)]) + b"".join(handles) + types + signature

        logger.debug(f"Encrypted {len(handles)} input(s) for user {short_hex(user)}")
        return EncryptedInputBundle(handles=handles, input_proof=proof)

    @staticmethod
    def _parse_proof(proof: bytes) -> Tuple[List[bytes], bytes, bytes]:
        """Split a proof into (handles, type codes, signature)."""
        if len(proof) < 1:
            raise ProofVerificationFailed("empty proof")
        count = proof[0]
        expected = 1 + count * HANDLE_SIZE + count + SIGNATURE_SIZE + 1
        if count == 0 or len(proof) != expected:
            raise ProofVerificationFailed("malformed proof")

        offset = 1 + count * HANDLE_SIZE
        handles = [proof[1 + i * HANDLE_SIZE: 1 + (i + 1) * HANDLE_SIZE] for i in range(count)]
        types = proof[offset: offset + count]
        signature = proof[offset + count:]
        return handles, types, signature

    def verify_input(
        self,
        external: ExternalInput,
        fhe_type: FheType,
        contract: bytes,
        user: bytes,
    ) -> Ciphertext:
        """
        Accept an external handle for use by ``contract``.

        Checks:
        1. Proof is well formed
        2. Coprocessor signature covers (contract, user, handles, types)
        3. Handle is covered by the proof with the expected type
        4. Handle is known to the runtime

        Args:
            external: Handle and proof as submitted by the user
            fhe_type: Type the contract expects
            contract: Address of the contract consuming the input
            user: Address of the submitting user

        Returns:
            Ciphertext usable by ``contract`` (the contract is granted access)

        Raises:
            ProofVerificationFailed: On any failed check
        """
        is_valid, error = validate_handle(external.handle)
        if is_valid:
            is_valid, error = validate_proof(external.input_proof)
        if not is_valid:
            raise ProofVerificationFailed(error)

        handles, types, signature = self._parse_proof(external.input_proof)
        digest = self._proof_digest(contract, user, handles, types)

        if digest not in self._verified_proofs:
            if not verify(digest, signature, self.coprocessor.public_key):
                raise ProofVerificationFailed("signature does not match contract/user context", external.handle)
            self._verified_proofs.add(digest)

        try:
            index = handles.index(external.handle)
        except ValueError:
            raise ProofVerificationFailed("handle not covered by proof", external.handle) from None

        if types[index] != fhe_type:
            raise ProofVerificationFailed(
                f"expected {fhe_type.name}, proof declares type code {types[index]}", external.handle
            )

        stored = self._values.get(external.handle)
        if stored is None or stored[0] != fhe_type:
            raise ProofVerificationFailed("unknown handle", external.handle)

        self.gas_meter.charge("verify", fhe_type)
        self.acl.allow(external.handle, contract)
        return Ciphertext(handle=external.handle, fhe_type=fhe_type)

    # =========================================================================
    # Arithmetic
    # =========================================================================

    def _arith(self, op: str, a: Ciphertext, b: Operand, result: Callable[[int, int], int]) -> Ciphertext:
        self._require_type(a, FheType.EUINT64, op)
        x = self._value(a)
        y, scalar = self._operand(b, a.fhe_type)
        self.gas_meter.charge(op, a.fhe_type, scalar)
        return self._fresh(op, a.fhe_type, result(x, y), a, b)

    def add(self, a: Ciphertext, b: Operand) -> Ciphertext:
        return self._arith("add", a, b, lambda x, y: x + y)

    def sub(self, a: Ciphertext, b: Operand) -> Ciphertext:
        """Wrapping subtraction; callers guarantee b <= a where it matters."""
        return self._arith("sub", a, b, lambda x, y: x - y)

    def mul(self, a: Ciphertext, b: Operand) -> Ciphertext:
        return self._arith("mul", a, b, lambda x, y: x * y)

    def min(self, a: Ciphertext, b: Operand) -> Ciphertext:
        return self._arith("min", a, b, min)

    def max(self, a: Ciphertext, b: Operand) -> Ciphertext:
        return self._arith("max", a, b, max)

    # =========================================================================
    # Comparison and selection
    # =========================================================================

    def _compare(self, op: str, a: Ciphertext, b: Operand, result: Callable[[int, int], int],
                 allowed: Tuple[FheType, ...] = (FheType.EUINT64,)) -> Ciphertext:
        if not isinstance(a, Ciphertext) or a.fhe_type not in allowed:
            raise TypeError(f"{op} not supported for {getattr(a, 'fhe_type', a)!r}")
        x = self._value(a)
        y, scalar = self._operand(b, a.fhe_type)
        self.gas_meter.charge(op, a.fhe_type, scalar)
        return self._fresh(op, FheType.EBOOL, int(result(x, y)), a, b)

    def gt(self, a: Ciphertext, b: Operand) -> Ciphertext:
        return self._compare("gt", a, b, lambda x, y: x > y)

    def ge(self, a: Ciphertext, b: Operand) -> Ciphertext:
        return self._compare("ge", a, b, lambda x, y: x >= y)

    def lt(self, a: Ciphertext, b: Operand) -> Ciphertext:
        return self._compare("lt", a, b, lambda x, y: x < y)

    def eq(self, a: Ciphertext, b: Operand) -> Ciphertext:
        return self._compare("eq", a, b, lambda x, y: x == y, tuple(FheType))

    def select(self, cond: Ciphertext, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        """Encrypted mux: a if cond else b, without revealing cond."""
        self._require_type(cond, FheType.EBOOL, "select")
        if not isinstance(a, Ciphertext) or not isinstance(b, Ciphertext):
            raise TypeError("select branches must be ciphertexts")
        if a.fhe_type != b.fhe_type:
            raise TypeError(f"select branch mismatch: {a.fhe_type.name} vs {b.fhe_type.name}")

        chosen = self._value(a) if self._value(cond) else self._value(b)
        self.gas_meter.charge("select", a.fhe_type)
        return self._fresh("select", a.fhe_type, chosen, cond, a, b)

    # =========================================================================
    # Trivial encryption
    # =========================================================================

    def as_euint64(self, value: int) -> Ciphertext:
        require(validate_integer(value, "value", 0, MAX_UINT64))
        self.gas_meter.charge("trivial", FheType.EUINT64)
        return self._fresh("trivial", FheType.EUINT64, value)

    def as_ebool(self, value: bool) -> Ciphertext:
        self.gas_meter.charge("trivial", FheType.EBOOL)
        return self._fresh("trivial", FheType.EBOOL, 1 if value else 0)

    def as_eaddress(self, address: bytes) -> Ciphertext:
        require(validate_address(address))
        self.gas_meter.charge("trivial", FheType.EADDRESS)
        return self._fresh("trivial", FheType.EADDRESS, int.from_bytes(address, "big"))

    # =========================================================================
    # Access control and decryption
    # =========================================================================

    def allow(self, ct: Ciphertext, principal: bytes) -> bool:
        """Permanently grant ``principal`` access to ``ct``."""
        require(validate_address(principal, "principal"))
        return self.acl.allow(ct.handle, principal)

    def is_allowed(self, ct: Ciphertext, principal: bytes) -> bool:
        return self.acl.is_allowed(ct.handle, principal)

    def _decode(self, ct: Ciphertext) -> Plaintext:
        value = self._value(ct)
        if ct.fhe_type == FheType.EBOOL:
            return bool(value)
        if ct.fhe_type == FheType.EADDRESS:
            return value.to_bytes(ADDRESS_SIZE, "big")
        return value

    def decrypt(self, principal: bytes, ct: Ciphertext) -> Plaintext:
        """
        Decrypt for ``principal`` (re-encryption to the user in fhEVM terms).

        Raises:
            AccessDenied: If the ACL has no (handle, principal) grant
        """
        if not self.acl.is_allowed(ct.handle, principal):
            raise AccessDenied(principal, ct.handle)
        return self._decode(ct)

    def debug_decrypt(self, ct: Ciphertext) -> Plaintext:
        """Decrypt without an ACL check. Tests and demos only."""
        return self._decode(ct)

    def stats(self) -> dict:
        return {
            "ciphertexts": len(self._values),
            "grants": len(self.acl),
            **self.gas_meter.stats(),
        }
