"""Identity store interface."""
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from ...entities.face import BoundingBox, Identity


class IdentityStore(ABC):
    """Interface for the keyed store holding identities and their samples.

    Every method is a suspension point; callers await each call before
    issuing the next one for the same photo.
    """

    @abstractmethod
    async def list_identities(self, namespace: Optional[str] = None) -> List[Identity]:
        """
        List every identity in a namespace.

        Args:
            namespace: Event identifier, None for the global namespace

        Returns:
            Identities of that namespace only, with their full sample history

        Raises:
            IdentityStoreError: If the read fails
        """
        pass

    @abstractmethod
    async def append_sample(
        self,
        identity_id: str,
        embedding: np.ndarray,
        box: BoundingBox,
        namespace: Optional[str] = None,
    ) -> Identity:
        """
        Append an embedding sample to an existing identity.

        Args:
            identity_id: Identity to extend
            embedding: New sample
            box: Bounding box of the face the sample came from
            namespace: Event identifier, None for the global namespace

        Returns:
            The updated identity

        Raises:
            IdentityNotFoundError: If the identity does not exist in the namespace
            IdentityStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def create_identity(
        self,
        identity_id: str,
        embedding: np.ndarray,
        box: BoundingBox,
        namespace: Optional[str] = None,
    ) -> Identity:
        """
        Create an identity with its first sample.

        Raises:
            IdentityStoreError: If the identity already exists or the write fails
        """
        pass

    @abstractmethod
    async def set_thumbnail(
        self,
        identity_id: str,
        thumbnail_ref: str,
        namespace: Optional[str] = None,
    ) -> None:
        """
        Record the preview artifact of an identity.

        Raises:
            IdentityNotFoundError: If the identity does not exist in the namespace
            IdentityStoreError: If the write fails
        """
        pass
