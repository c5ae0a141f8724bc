"""
Access control list for ciphertext handles.

A grant (handle, principal) authorizes the principal to request decryption
of the handle, or a contract to spend it. Grants are permanent; re-issuing
one is a no-op. The only way a grant disappears is the rollback of the
transition that created it, i.e. it never committed.
"""

from typing import List, Set, Tuple

from fheads.crypto import short_hex
from fheads.utils.logger import get_logger

logger = get_logger("acl")


class AccessControlList:
    """
    Append-only (handle, principal) grant table.

    Attributes:
        _grants: Set of granted (handle, principal) pairs
        _journal: Grants in issue order, used for checkpoint/rollback
    """

    def __init__(self):
        self._grants: Set[Tuple[bytes, bytes]] = set()
        self._journal: List[Tuple[bytes, bytes]] = []

    def allow(self, handle: bytes, principal: bytes) -> bool:
        """
        Grant ``principal`` access to ``handle``.

        Returns:
            True if the grant is new, False if it already existed
        """
        key = (handle, principal)
        if key in self._grants:
            return False

        self._grants.add(key)
        self._journal.append(key)
        logger.debug(f"Granted {short_hex(principal)} on {short_hex(handle, 14)}")
        return True

    def is_allowed(self, handle: bytes, principal: bytes) -> bool:
        return (handle, principal) in self._grants

    def grants_for(self, principal: bytes) -> List[bytes]:
        """Handles a principal may access, in grant order."""
        return [h for h, p in self._journal if p == principal]

    # =========================================================================
    # Transition support
    # =========================================================================

    def checkpoint(self) -> int:
        """Mark the current end of the journal."""
        return len(self._journal)

    def rollback(self, checkpoint: int) -> int:
        """
        Discard grants issued after ``checkpoint``.

        Returns:
            Number of grants discarded
        """
        dropped = self._journal[checkpoint:]
        for key in dropped:
            self._grants.discard(key)
        del self._journal[checkpoint:]
        return len(dropped)

    def __len__(self) -> int:
        return len(self._journal)

    def __repr__(self) -> str:
        return f"AccessControlList(grants={len(self._journal)})"
