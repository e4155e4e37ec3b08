"""Service interfaces package."""
from .recognition import FaceDetector
from .storage import ArtifactStore, IdentityStore, PhotoMetadataSink

__all__ = ["ArtifactStore", "FaceDetector", "IdentityStore", "PhotoMetadataSink"]
