"""Storage interfaces."""
from .artifact_store import ArtifactStore, PhotoMetadataSink
from .identity_store import IdentityStore

__all__ = ["ArtifactStore", "IdentityStore", "PhotoMetadataSink"]
