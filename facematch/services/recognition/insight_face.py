"""
InsightFace-based implementation of the face detector interface.

This module provides a concrete detector using the InsightFace library. One
instance is one detection tier: the detection input size and confidence
threshold decide how fast it is and how many small or distant faces it
finds. The orchestrator combines a fast tier with a high-recall tier.

Example:
    ```python
    detector = InsightFaceDetector(det_size=416, det_thresh=0.5)
    detector.load()
    faces = await detector.detect(image)
    ```

Note:
    This implementation uses CPU inference by default. For GPU support,
    pass providers=['CUDAExecutionProvider', 'CPUExecutionProvider'].
"""
import asyncio
from typing import List, Optional

import numpy as np
from insightface.app import FaceAnalysis
from insightface.app.common import Face as InsightFace

from facematch.core.config import settings
from facematch.core.exceptions import ModelLoadError
from facematch.core.logging import get_logger
from facematch.domain.entities.face import BoundingBox, DetectedFace
from facematch.domain.interfaces.recognition.face_detector import FaceDetector

logger = get_logger(__name__)


class InsightFaceDetector(FaceDetector):
    """
    InsightFace-based detection tier.

    Attributes:
        det_size: Square detection input size in pixels (multiple of 32)
        det_thresh: Minimum detection score for a face to be kept
        model: InsightFace model instance, None until load() succeeds
    """

    def __init__(
        self,
        det_size: int,
        det_thresh: float,
        model_name: Optional[str] = None,
        providers: Optional[List[str]] = None,
    ) -> None:
        """Store tier settings; the model is loaded by load()."""
        self.det_size = det_size
        self.det_thresh = det_thresh
        self.model_name = model_name or settings.MODEL_PATH
        self.providers = providers or ['CPUExecutionProvider']
        self.model: Optional[FaceAnalysis] = None

    def load(self) -> None:
        """Load and prepare the InsightFace model for this tier."""
        try:
            model = FaceAnalysis(
                name=self.model_name,
                root=settings.MODEL_CACHE_DIR,
                allowed_modules=['detection', 'recognition'],
                providers=self.providers,
            )
            model.prepare(
                ctx_id=0,
                det_size=(self.det_size, self.det_size),
                det_thresh=self.det_thresh,
            )
        except Exception as e:
            logger.error(
                "Failed to load InsightFace model",
                model=self.model_name,
                det_size=self.det_size,
                error=str(e),
                exc_info=True
            )
            raise ModelLoadError(f"Failed to load InsightFace model {self.model_name}: {e}") from e

        self._check_embedding_length(model)
        self.model = model
        logger.info(
            "InsightFace model loaded",
            model=self.model_name,
            det_size=self.det_size,
            det_thresh=self.det_thresh
        )

    def _check_embedding_length(self, model: FaceAnalysis) -> None:
        """Refuse a recognition model whose output length is not EMBEDDING_DIM.

        Raises:
            ModelLoadError: If the model has no recognition head or its
                embeddings have another length
        """
        recognition = model.models.get('recognition')
        if recognition is None:
            raise ModelLoadError(
                f"InsightFace model {self.model_name} has no recognition model",
                details={"model": self.model_name}
            )

        length = int(recognition.output_shape[1])
        if length != settings.EMBEDDING_DIM:
            logger.error(
                "Recognition model embedding length differs from EMBEDDING_DIM",
                model=self.model_name,
                length=length,
                expected=settings.EMBEDDING_DIM
            )
            raise ModelLoadError(
                f"InsightFace model {self.model_name} produces {length}-d embeddings, "
                f"EMBEDDING_DIM is {settings.EMBEDDING_DIM}",
                details={"model": self.model_name, "length": length, "expected": settings.EMBEDDING_DIM}
            )

    def _convert_to_face(self, face_data: InsightFace) -> DetectedFace:
        """
        Convert an InsightFace detection result to our DetectedFace domain model.

        InsightFace boxes are (x1, y1, x2, y2) in pixels of the input image.
        Embeddings are the unit-length `normed_embedding`; match thresholds
        are distances between unit vectors.
        """
        x1, y1, x2, y2 = (float(v) for v in face_data.bbox)
        bounding_box = BoundingBox(
            x=round(x1),
            y=round(y1),
            width=round(max(0.0, x2 - x1)),
            height=round(max(0.0, y2 - y1)),
        )
        embedding = np.asarray(face_data.normed_embedding, dtype=np.float64)

        return DetectedFace(
            bounding_box=bounding_box,
            confidence=float(face_data.det_score),
            embedding=embedding,
        )

    async def detect(self, image: np.ndarray) -> List[DetectedFace]:
        """Detect faces without blocking the event loop."""
        if self.model is None:
            raise ModelLoadError("InsightFace model is not loaded")

        logger.debug(
            "Processing image",
            image_shape=image.shape,
            det_size=self.det_size
        )
        loop = asyncio.get_running_loop()
        faces = await loop.run_in_executor(None, self.model.get, image)

        detected = [
            self._convert_to_face(face) for face in faces or []
            if face.embedding is not None
        ]
        logger.debug(
            "Face detection results",
            faces_found=len(detected),
            det_size=self.det_size
        )
        return detected
