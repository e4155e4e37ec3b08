"""Face thumbnail extraction and upload."""
import math
from typing import Optional, Tuple

import cv2
import numpy as np

from facematch.core.config import settings
from facematch.core.exceptions import InvalidImageError
from facematch.core.logging import get_logger
from facematch.core.utils.image import encode_jpeg
from facematch.domain.entities.face import BoundingBox
from facematch.domain.interfaces.storage.artifact_store import ArtifactStore
from facematch.domain.interfaces.storage.identity_store import IdentityStore

logger = get_logger(__name__)


class ThumbnailExtractor:
    """Crops a padded preview around a face and stores it as an identity thumbnail.

    Padding is a fraction of the longer box side, added on every side and
    clamped to the image.
    """

    def __init__(
        self,
        artifact_store: ArtifactStore,
        identity_store: IdentityStore,
        padding: Optional[float] = None,
        max_size: Optional[int] = None,
    ) -> None:
        self._artifact_store = artifact_store
        self._identity_store = identity_store
        self.padding = settings.THUMBNAIL_PADDING if padding is None else padding
        self.max_size = max_size or settings.THUMBNAIL_MAX_SIZE

    def crop_region(self, image_shape: Tuple[int, ...], box: BoundingBox) -> Tuple[int, int, int, int]:
        """Padded crop rectangle (x1, y1, x2, y2) clamped to the image bounds."""
        height, width = image_shape[:2]
        pad = self.padding * max(box.width, box.height)

        x1 = max(0, int(math.floor(box.x - pad)))
        y1 = max(0, int(math.floor(box.y - pad)))
        x2 = min(width, int(math.ceil(box.x + box.width + pad)))
        y2 = min(height, int(math.ceil(box.y + box.height + pad)))
        return x1, y1, x2, y2

    def extract(self, image: np.ndarray, box: BoundingBox) -> bytes:
        """Crop, downscale and JPEG-encode the face region.

        Raises:
            InvalidImageError: If the box lies outside the image
        """
        x1, y1, x2, y2 = self.crop_region(image.shape, box)
        if x2 <= x1 or y2 <= y1:
            raise InvalidImageError(
                "Face box lies outside the image",
                details={"box": box.model_dump(), "image_shape": list(image.shape[:2])},
            )

        crop = image[y1:y2, x1:x2]
        crop_height, crop_width = crop.shape[:2]
        longest = max(crop_width, crop_height)
        if longest > self.max_size:
            scale = self.max_size / longest
            crop = cv2.resize(
                crop,
                (max(1, round(crop_width * scale)), max(1, round(crop_height * scale))),
                interpolation=cv2.INTER_AREA,
            )
        return encode_jpeg(crop, settings.THUMBNAIL_JPEG_QUALITY)

    @staticmethod
    def thumbnail_key(identity_id: str, namespace: Optional[str] = None) -> str:
        return f"{settings.THUMBNAIL_PREFIX}/{namespace or 'global'}/{identity_id}.jpg"

    async def create_thumbnail(
        self,
        image: np.ndarray,
        box: BoundingBox,
        identity_id: str,
        namespace: Optional[str] = None,
    ) -> str:
        """Extract a thumbnail, upload it and record it on the identity.

        Returns:
            Artifact reference of the uploaded thumbnail

        Raises:
            InvalidImageError: If the crop cannot be produced
            StorageError: If the upload fails
            IdentityStoreError: If the reference cannot be recorded
        """
        data = self.extract(image, box)
        ref = await self._artifact_store.save(
            data, self.thumbnail_key(identity_id, namespace), "image/jpeg"
        )
        await self._identity_store.set_thumbnail(identity_id, ref, namespace)
        logger.info(
            "Stored face thumbnail",
            identity_id=identity_id,
            namespace=namespace,
            thumbnail_ref=ref,
            size_bytes=len(data)
        )
        return ref
