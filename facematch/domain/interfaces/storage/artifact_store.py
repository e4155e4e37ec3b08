"""Artifact store and photo metadata sink interfaces."""
from abc import ABC, abstractmethod

from ...value_objects.recognition import PhotoFaceResult


class ArtifactStore(ABC):
    """Interface for storing encoded artifacts such as face thumbnails."""

    @abstractmethod
    async def save(self, data: bytes, key: str, content_type: str = "image/jpeg") -> str:
        """
        Store an encoded blob.

        Args:
            data: Encoded artifact
            key: Suggested object key
            content_type: MIME type of the blob

        Returns:
            Reference usable for later retrieval

        Raises:
            StorageError: If the artifact cannot be stored
        """
        pass


class PhotoMetadataSink(ABC):
    """Receives the face metadata of a processed photo for persistence."""

    @abstractmethod
    async def save_faces(self, photo_id: str, result: PhotoFaceResult) -> None:
        """
        Persist face ids, main face and boxes against a photo record.

        Args:
            photo_id: Photo record identifier
            result: Face metadata of the photo
        """
        pass
