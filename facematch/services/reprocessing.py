"""Background reprocessing of photos that still need face identities."""
import asyncio
from typing import Iterable, Optional

import structlog
from pydantic import BaseModel, Field

from facematch.core.config import settings
from facematch.core.exceptions import FaceIdentityError, StorageError
from facematch.core.logging import get_logger
from facematch.domain.interfaces.storage.artifact_store import PhotoMetadataSink
from facematch.services.aws.s3 import S3Service
from facematch.services.photo_faces import PhotoFaceService

logger = get_logger(__name__)


class PendingPhoto(BaseModel):
    """A stored photo whose faces have not been processed yet."""
    photo_id: str = Field(..., description="Photo record identifier")
    image_key: str = Field(..., description="S3 object key of the photo")
    namespace: Optional[str] = Field(None, description="Event the photo belongs to")


class ReprocessingSummary(BaseModel):
    """Counts of a reprocessing run."""
    processed: int = 0
    failed: int = 0


class ReprocessingService:
    """Runs the photo face pipeline over pending photos, one photo at a time.

    Photos are never processed concurrently; a cooldown separates two
    consecutive photos. A failing photo is logged and counted and the run
    moves on. Partially processed photos are left for a later run.
    """

    def __init__(
        self,
        photo_faces: PhotoFaceService,
        s3_service: S3Service,
        metadata_sink: PhotoMetadataSink,
        cooldown_seconds: Optional[float] = None,
    ) -> None:
        self._photo_faces = photo_faces
        self._s3_service = s3_service
        self._metadata_sink = metadata_sink
        self.cooldown_seconds = (
            settings.REPROCESS_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        )

    async def reprocess(self, photos: Iterable[PendingPhoto]) -> ReprocessingSummary:
        """Process every pending photo and report its faces to the metadata sink."""
        summary = ReprocessingSummary()
        pending = list(photos)
        logger.info("Starting face reprocessing", pending=len(pending))

        for index, photo in enumerate(pending):
            if index > 0 and self.cooldown_seconds > 0:
                await asyncio.sleep(self.cooldown_seconds)

            # Every log line emitted while handling the photo carries its id
            with structlog.contextvars.bound_contextvars(photo_id=photo.photo_id):
                succeeded = await self._reprocess_photo(photo)
            if succeeded:
                summary.processed += 1
            else:
                summary.failed += 1

        logger.info(
            "Face reprocessing complete",
            processed=summary.processed,
            failed=summary.failed
        )
        return summary

    async def _reprocess_photo(self, photo: PendingPhoto) -> bool:
        try:
            image_bytes = await self._s3_service.get_file(None, photo.image_key)
            result = await self._photo_faces.process_photo(image_bytes, namespace=photo.namespace)
            await self._metadata_sink.save_faces(photo.photo_id, result)
        except StorageError as e:
            logger.error(
                "Could not fetch photo for reprocessing",
                image_key=photo.image_key,
                error=str(e)
            )
            return False
        except FaceIdentityError as e:
            logger.error(
                "Photo reprocessing failed",
                error=str(e),
                details=e.details
            )
            return False
        except Exception as e:
            logger.error(
                "Unexpected error reprocessing photo",
                error=str(e),
                exc_info=True
            )
            return False

        logger.info(
            "Reprocessed photo",
            namespace=photo.namespace,
            main_face_id=result.main_face_id,
            faces=len(result.faces)
        )
        return True
