"""
Access Gateway - decryption grants for auction outputs.

Every value a principal may ever see in the clear passes through here:
deposits are granted to their owner, winner identities to the requester
who ran the query. Nothing else is granted to users.
"""

from fheads.core.errors import AccessDenied
from fheads.core.fhe import Ciphertext, CiphertextRuntime
from fheads.core.fhe.runtime import Plaintext
from fheads.crypto import short_hex
from fheads.utils.logger import get_logger

logger = get_logger("gateway")


class AccessGateway:
    """Issues and checks decryption grants on top of the runtime ACL."""

    def __init__(self, runtime: CiphertextRuntime):
        self.runtime = runtime

    def grant(self, principal: bytes, ct: Ciphertext) -> bool:
        """
        Idempotently allow ``principal`` to decrypt ``ct``.

        Returns:
            True if the grant is new
        """
        return self.runtime.allow(ct, principal)

    def check(self, principal: bytes, ct: Ciphertext) -> bool:
        return self.runtime.is_allowed(ct, principal)

    def request_decrypt(self, principal: bytes, ct: Ciphertext) -> Plaintext:
        """
        Decrypt ``ct`` for ``principal``.

        Raises:
            AccessDenied: If no grant exists
        """
        if not self.check(principal, ct):
            logger.warning(f"Denied decryption of {short_hex(ct.handle, 14)} to {short_hex(principal)}")
            raise AccessDenied(principal, ct.handle)
        return self.runtime.decrypt(principal, ct)
