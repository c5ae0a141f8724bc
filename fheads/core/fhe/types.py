"""
Ciphertext handle types.

A handle is a 32-byte reference to an encrypted value held by the runtime.
Handles are what contracts store and pass around; only the runtime can map
them back to plaintexts, and only for principals the ACL allows.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List


class FheType(IntEnum):
    """Encrypted value types (fhEVM type codes)."""
    EBOOL = 0
    EUINT64 = 5
    EADDRESS = 7

    @property
    def bits(self) -> int:
        return {FheType.EBOOL: 1, FheType.EUINT64: 64, FheType.EADDRESS: 160}[self]

    @property
    def modulus(self) -> int:
        return 1 << self.bits


@dataclass(frozen=True)
class Ciphertext:
    """An opaque, typed ciphertext handle."""
    handle: bytes
    fhe_type: FheType

    def __repr__(self) -> str:
        return f"Ciphertext({self.fhe_type.name}, 0x{self.handle.hex()[:12]}...)"


@dataclass(frozen=True)
class ExternalInput:
    """
    A client-encrypted value as submitted to a contract.

    The proof binds the handle to the (contract, user) pair it was encrypted
    for; the contract turns it into a usable Ciphertext via verify_input.
    """
    handle: bytes
    input_proof: bytes


@dataclass
class EncryptedInputBundle:
    """Handles produced by one EncryptedInput.encrypt() call, sharing a proof."""
    handles: List[bytes]
    input_proof: bytes

    def input(self, index: int = 0) -> ExternalInput:
        """The index-th handle paired with the shared proof."""
        return ExternalInput(handle=self.handles[index], input_proof=self.input_proof)

    def inputs(self) -> List[ExternalInput]:
        return [self.input(i) for i in range(len(self.handles))]
