"""Custom exceptions for the face identity engine."""
from typing import Optional


class FaceIdentityError(Exception):
    """Base exception for face identity operations."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face identity error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.details = details or {}


class InvalidImageError(FaceIdentityError):
    """Raised when the provided image is invalid or cannot be processed."""
    pass


class ModelLoadError(FaceIdentityError):
    """Raised when the face detection models fail to load or are not loaded yet."""
    pass


class MatchComputationError(FaceIdentityError):
    """Raised when distances to known identities cannot be computed."""
    pass


class InvalidEmbeddingError(MatchComputationError):
    """Raised when an embedding has the wrong length or non-finite values."""
    pass


class IdentityStoreError(FaceIdentityError):
    """Base exception for identity store operations."""
    pass


class IdentityNotFoundError(IdentityStoreError):
    """Raised when writing to an identity that does not exist in the namespace."""
    pass


class StorageError(FaceIdentityError):
    """Raised when an artifact cannot be read from or written to object storage."""
    pass


class ServiceNotInitializedError(FaceIdentityError):
    """Raised when a service is requested before the container is initialized."""
    pass
