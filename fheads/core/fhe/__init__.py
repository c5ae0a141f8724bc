"""Ciphertext runtime: handles, ACL, gas metering and the mock backend"""
from fheads.core.fhe.types import Ciphertext, EncryptedInputBundle, ExternalInput, FheType
from fheads.core.fhe.acl import AccessControlList
from fheads.core.fhe.gas import GasMeter, GasReading, DEFAULT_COSTS
from fheads.core.fhe.runtime import CiphertextRuntime, EncryptedInput, MockRuntime

__all__ = [
    "Ciphertext",
    "EncryptedInputBundle",
    "ExternalInput",
    "FheType",
    "AccessControlList",
    "GasMeter",
    "GasReading",
    "DEFAULT_COSTS",
    "CiphertextRuntime",
    "EncryptedInput",
    "MockRuntime",
]
