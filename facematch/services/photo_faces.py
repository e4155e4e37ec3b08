"""Per-photo face processing: sequential match-and-commit of every detected face."""
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from facematch.core.exceptions import (
    FaceIdentityError,
    IdentityStoreError,
    MatchComputationError,
)
from facematch.core.logging import get_logger
from facematch.core.utils.image import bytes_to_numpy_array
from facematch.domain.entities.face import DetectedFace
from facematch.domain.interfaces.storage.identity_store import IdentityStore
from facematch.domain.value_objects.recognition import (
    FaceAssignment,
    MatchDecision,
    PhotoFaceResult,
)
from facematch.services.detection import DetectionOrchestrator
from facematch.services.identity_matching import IdentityMatcher
from facematch.services.thumbnails import ThumbnailExtractor

logger = get_logger(__name__)


class PhotoFaceService:
    """Service for turning the faces of one photo into identities.

    Faces are handled strictly one at a time. Each face is matched, and its
    decision written to the identity store, before the next face is matched,
    so every comparison sees the identities created or extended by earlier
    faces of the same photo.

    Example:
        ```python
        service = PhotoFaceService(orchestrator, matcher, identity_store, thumbnails)
        result = await service.process_photo(image_bytes, namespace="wedding-2024")
        result.face_ids, result.main_face_id, result.boxes
        ```
    """

    def __init__(
        self,
        detection: DetectionOrchestrator,
        matcher: IdentityMatcher,
        identity_store: IdentityStore,
        thumbnails: Optional[ThumbnailExtractor] = None,
    ) -> None:
        """Initialize the photo face service.

        Args:
            detection: Orchestrator producing faces ordered largest first
            matcher: Matcher deciding the identity of each embedding
            identity_store: Store the decisions are committed to
            thumbnails: Extractor for identities without a preview, optional
        """
        self._detection = detection
        self._matcher = matcher
        self._identity_store = identity_store
        self._thumbnails = thumbnails

    async def process_photo(self, image_bytes: bytes, namespace: Optional[str] = None) -> PhotoFaceResult:
        """Detect, match and commit every face of a photo.

        Args:
            image_bytes: Encoded photo
            namespace: Event identifier, None for the global namespace

        Returns:
            PhotoFaceResult with face ids, main face and boxes; the sentinel
            "unknown" when no face is found

        Raises:
            InvalidImageError: If the photo cannot be decoded
            ModelLoadError: If the detection models are not initialized
        """
        image = bytes_to_numpy_array(image_bytes)
        faces = await self._detection.detect(image)
        if not faces:
            logger.info("No faces detected in photo", namespace=namespace)
            return PhotoFaceResult(faces=[])
        return await self.commit_faces(faces, namespace=namespace, image=image)

    async def commit_faces(
        self,
        faces: Sequence[DetectedFace],
        namespace: Optional[str] = None,
        image: Optional[np.ndarray] = None,
    ) -> PhotoFaceResult:
        """Match and commit faces one after another, in the given order.

        A face whose store read or write fails is logged and left out of
        the result; the remaining faces are still processed.

        Args:
            faces: Faces ordered largest first
            namespace: Event identifier, None for the global namespace
            image: Decoded photo, needed for thumbnails

        Returns:
            PhotoFaceResult of the faces that were assigned an identity
        """
        assignments: List[FaceAssignment] = []
        needs_thumbnail: Dict[str, FaceAssignment] = {}

        for index, face in enumerate(faces):
            try:
                assignment, missing_thumbnail = await self._commit_face(face, namespace)
            except IdentityStoreError as e:
                logger.error(
                    "Identity store failure, skipping face",
                    face_index=index,
                    namespace=namespace,
                    error=str(e)
                )
                continue
            except Exception as e:
                logger.error(
                    "Unexpected error while committing face, skipping",
                    face_index=index,
                    namespace=namespace,
                    error=str(e),
                    exc_info=True
                )
                continue

            assignments.append(assignment)
            if missing_thumbnail and assignment.identity_id not in needs_thumbnail:
                needs_thumbnail[assignment.identity_id] = assignment

        if image is not None and self._thumbnails is not None:
            for assignment in needs_thumbnail.values():
                assignment.thumbnail_ref = await self._create_thumbnail(image, assignment, namespace)

        result = PhotoFaceResult(faces=assignments)
        logger.info(
            "Processed photo faces",
            namespace=namespace,
            detected=len(faces),
            committed=len(assignments),
            main_face_id=result.main_face_id,
            new_identities=sum(1 for a in assignments if a.is_new_identity)
        )
        return result

    async def _commit_face(self, face: DetectedFace, namespace: Optional[str]) -> Tuple[FaceAssignment, bool]:
        """Match one face and write the decision before returning.

        Returns:
            The assignment and whether the identity still lacks a thumbnail
        """
        try:
            decision = await self._matcher.match(face.embedding, namespace)
        except MatchComputationError as e:
            decision = self._matcher.fallback_decision(face.embedding, namespace)
            logger.warning(
                "Matching failed, using fallback identity",
                identity_id=decision.identity_id,
                namespace=namespace,
                error=str(e),
                details=e.details
            )
            # Fallback ids are reported but never written to the store
            return self._assignment(face, decision), False

        if decision.is_new_identity:
            identity = await self._identity_store.create_identity(
                decision.identity_id, face.embedding, face.bounding_box, namespace
            )
        else:
            identity = await self._identity_store.append_sample(
                decision.identity_id, face.embedding, face.bounding_box, namespace
            )

        logger.debug(
            "Committed face decision",
            identity_id=decision.identity_id,
            namespace=namespace,
            is_new_identity=decision.is_new_identity,
            samples=identity.sample_count
        )
        return self._assignment(face, decision), identity.thumbnail_ref is None

    @staticmethod
    def _assignment(face: DetectedFace, decision: MatchDecision) -> FaceAssignment:
        return FaceAssignment(
            identity_id=decision.identity_id,
            bounding_box=face.bounding_box,
            distance=decision.distance,
            is_new_identity=decision.is_new_identity,
        )

    async def _create_thumbnail(
        self,
        image: np.ndarray,
        assignment: FaceAssignment,
        namespace: Optional[str],
    ) -> Optional[str]:
        """Create a thumbnail; failures are logged and never fail the photo."""
        try:
            return await self._thumbnails.create_thumbnail(
                image, assignment.bounding_box, assignment.identity_id, namespace
            )
        except FaceIdentityError as e:
            logger.error(
                "Failed to create face thumbnail",
                identity_id=assignment.identity_id,
                namespace=namespace,
                error=str(e)
            )
        except Exception as e:
            logger.error(
                "Unexpected error creating face thumbnail",
                identity_id=assignment.identity_id,
                namespace=namespace,
                error=str(e),
                exc_info=True
            )
        return None
