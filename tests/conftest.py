"""Shared fixtures and in-memory fakes for the face identity tests."""
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
import pytest

from facematch.core.config import settings
from facematch.core.exceptions import IdentityNotFoundError, IdentityStoreError, ModelLoadError
from facematch.domain.entities.face import BoundingBox, DetectedFace, Identity
from facematch.domain.interfaces.recognition.face_detector import FaceDetector
from facematch.domain.interfaces.storage.artifact_store import ArtifactStore
from facematch.domain.interfaces.storage.identity_store import IdentityStore

DIM = settings.EMBEDDING_DIM


def vector(*values: Tuple[int, float]) -> np.ndarray:
    """Embedding with the given (index, value) entries and zeros elsewhere."""
    embedding = np.zeros(DIM)
    for index, value in values:
        embedding[index] = value
    return embedding


def axis(index: int) -> np.ndarray:
    """Unit embedding along one axis; two different axes are sqrt(2) apart."""
    return vector((index, 1.0))


def make_face(embedding: np.ndarray, x: float = 0, y: float = 0, size: float = 10) -> DetectedFace:
    return DetectedFace(
        embedding=embedding,
        bounding_box=BoundingBox(x=x, y=y, width=size, height=size),
    )


class FakeIdentityStore(IdentityStore):
    """In-memory identity store recording every call.

    `fail` maps an operation name to the number of upcoming calls of that
    operation that raise IdentityStoreError.
    """

    def __init__(self) -> None:
        self.identities: Dict[Tuple[str, str], Identity] = {}
        self.calls: List[Tuple[str, Optional[str], Optional[str]]] = []
        self.fail: Dict[str, int] = {}

    def _maybe_fail(self, operation: str) -> None:
        if self.fail.get(operation, 0) > 0:
            self.fail[operation] -= 1
            raise IdentityStoreError(f"{operation} failed")

    def seed(self, identity_id: str, samples: Sequence[np.ndarray], namespace: Optional[str] = None,
             thumbnail_ref: Optional[str] = None) -> Identity:
        identity = Identity(
            identity_id=identity_id,
            namespace=namespace,
            samples=list(samples),
            thumbnail_ref=thumbnail_ref,
            photo_count=len(samples),
        )
        self.identities[(namespace or "", identity_id)] = identity
        return identity

    def in_namespace(self, namespace: Optional[str] = None) -> List[Identity]:
        return [i for (ns, _), i in self.identities.items() if ns == (namespace or "")]

    async def list_identities(self, namespace: Optional[str] = None) -> List[Identity]:
        self.calls.append(("list", None, namespace))
        self._maybe_fail("list")
        return self.in_namespace(namespace)

    async def append_sample(self, identity_id, embedding, box, namespace=None) -> Identity:
        self.calls.append(("append", identity_id, namespace))
        self._maybe_fail("append")
        key = (namespace or "", identity_id)
        if key not in self.identities:
            raise IdentityNotFoundError(f"Identity not found: {identity_id}")
        current = self.identities[key]
        updated = Identity(
            identity_id=identity_id,
            namespace=namespace,
            samples=[*current.samples, embedding],
            thumbnail_ref=current.thumbnail_ref,
            photo_count=current.photo_count + 1,
        )
        self.identities[key] = updated
        return updated

    async def create_identity(self, identity_id, embedding, box, namespace=None) -> Identity:
        self.calls.append(("create", identity_id, namespace))
        self._maybe_fail("create")
        key = (namespace or "", identity_id)
        if key in self.identities:
            raise IdentityStoreError(f"Identity already exists: {identity_id}")
        identity = Identity(identity_id=identity_id, namespace=namespace, samples=[embedding], photo_count=1)
        self.identities[key] = identity
        return identity

    async def set_thumbnail(self, identity_id, thumbnail_ref, namespace=None) -> None:
        self.calls.append(("set_thumbnail", identity_id, namespace))
        self._maybe_fail("set_thumbnail")
        key = (namespace or "", identity_id)
        if key not in self.identities:
            raise IdentityNotFoundError(f"Identity not found: {identity_id}")
        self.identities[key] = self.identities[key].model_copy(update={"thumbnail_ref": thumbnail_ref})


class FakeArtifactStore(ArtifactStore):
    """Keeps saved artifacts in a dict keyed by object key."""

    def __init__(self) -> None:
        self.saved: Dict[str, bytes] = {}

    async def save(self, data: bytes, key: str, content_type: str = "image/jpeg") -> str:
        self.saved[key] = data
        return key


class FakeDetector(FaceDetector):
    """Detector tier returning a fixed list of faces."""

    def __init__(self, faces: Optional[List[DetectedFace]] = None, fail_load: bool = False) -> None:
        self.faces = faces or []
        self.fail_load = fail_load
        self.load_calls = 0
        self.detect_calls = 0

    def load(self) -> None:
        self.load_calls += 1
        if self.fail_load:
            raise ModelLoadError("model files missing")

    async def detect(self, image: np.ndarray) -> List[DetectedFace]:
        self.detect_calls += 1
        return list(self.faces)


@pytest.fixture
def identity_store() -> FakeIdentityStore:
    return FakeIdentityStore()


@pytest.fixture
def artifact_store() -> FakeArtifactStore:
    return FakeArtifactStore()


@pytest.fixture
def blank_image() -> np.ndarray:
    """A 100x100 gray BGR image."""
    return np.full((100, 100, 3), 128, dtype=np.uint8)


@pytest.fixture
def image_bytes(blank_image) -> bytes:
    """The blank image encoded as JPEG."""
    ok, buffer = cv2.imencode(".jpg", blank_image)
    assert ok
    return buffer.tobytes()
