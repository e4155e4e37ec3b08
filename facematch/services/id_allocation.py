"""Allocation of human-readable identity identifiers."""
import re
from typing import Iterable, List, Optional

from facematch.core.logging import get_logger
from facematch.domain.entities.face import Identity
from facematch.domain.interfaces.storage.identity_store import IdentityStore

logger = get_logger(__name__)

ID_STEM = "person"


def format_identity_id(number: int, namespace: Optional[str] = None) -> str:
    """Build `person_<n>`, prefixed with `<namespace>_` inside an event."""
    identity_id = f"{ID_STEM}_{number}"
    if namespace:
        return f"{namespace}_{identity_id}"
    return identity_id


def next_identity_id(namespace: Optional[str], identity_ids: Iterable[str]) -> str:
    """Return the identifier after the highest numbered one.

    Numbering follows the highest existing number, not the identity count;
    ids freed by an external deletion or merge are never handed out again.
    """
    prefix = f"{re.escape(namespace)}_" if namespace else ""
    pattern = re.compile(rf"^(?:{prefix})?{ID_STEM}_(\d+)$")

    highest = 0
    for identity_id in identity_ids:
        match = pattern.match(identity_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return format_identity_id(highest + 1, namespace)


class IdAllocator:
    """Hands out the next free `person_<n>` identifier of a namespace."""

    def __init__(self, identity_store: IdentityStore) -> None:
        self._identity_store = identity_store

    async def allocate(
        self,
        namespace: Optional[str] = None,
        identities: Optional[List[Identity]] = None,
    ) -> str:
        """Allocate an identifier in a namespace.

        Args:
            namespace: Event identifier, None for the global namespace
            identities: Snapshot of the namespace already fetched by the caller;
                the store is queried when omitted

        Returns:
            The new identifier
        """
        if identities is None:
            identities = await self._identity_store.list_identities(namespace)
        return self.allocate_from(namespace, identities)

    def allocate_from(self, namespace: Optional[str], identities: List[Identity]) -> str:
        """Allocate an identifier from a namespace snapshot without a store read."""
        identity_id = next_identity_id(namespace, (i.identity_id for i in identities))
        logger.debug(
            "Allocated identity id",
            identity_id=identity_id,
            namespace=namespace,
            known_identities=len(identities),
        )
        return identity_id
