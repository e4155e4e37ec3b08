"""Detection orchestration: detector tiers, prominence ranking and model lifecycle."""
import asyncio
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from facematch.core.config import settings
from facematch.core.exceptions import ModelLoadError
from facematch.core.logging import get_logger
from facematch.domain.entities.face import DetectedFace
from facematch.domain.interfaces.recognition.face_detector import FaceDetector

logger = get_logger(__name__)


class ModelState(str, Enum):
    """Lifecycle of the detection models."""
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


def sort_by_prominence(faces: Sequence[DetectedFace]) -> List[DetectedFace]:
    """Order faces by bounding-box area, largest first; ties keep detector order."""
    return sorted(faces, key=lambda face: face.bounding_box.area, reverse=True)


class DetectionOrchestrator:
    """Runs detector tiers in order until one of them finds faces.

    The first tier should be fast with lower recall, later tiers slower
    with higher recall. Models are loaded once by initialize(); detect()
    never loads them implicitly.

    Example:
        ```python
        orchestrator = DetectionOrchestrator([fast_detector, recall_detector])
        await orchestrator.initialize()
        faces = await orchestrator.detect(image)
        ```
    """

    def __init__(self, detectors: Sequence[FaceDetector], max_faces: Optional[int] = None) -> None:
        """Initialize the orchestrator.

        Args:
            detectors: Detector tiers, tried in order
            max_faces: Maximum number of faces kept per image, defaults to settings
        """
        if not detectors:
            raise ValueError("At least one detector tier is required")
        self._detectors = list(detectors)
        self._max_faces = max_faces or settings.MAX_FACES_PER_IMAGE
        self._state = ModelState.UNINITIALIZED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ModelState:
        """Current lifecycle state of the detection models."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Whether every detector tier is loaded."""
        return self._state is ModelState.READY

    async def initialize(self) -> None:
        """Load every detector tier once.

        Raises:
            ModelLoadError: If any tier fails to load
        """
        async with self._lock:
            if self._state is ModelState.READY:
                return

            logger.info("Loading face detection models", tiers=len(self._detectors))
            loop = asyncio.get_running_loop()
            try:
                for detector in self._detectors:
                    await loop.run_in_executor(None, detector.load)
            except Exception as e:
                self._state = ModelState.FAILED
                logger.error("Face detection models failed to load", error=str(e))
                if isinstance(e, ModelLoadError):
                    raise
                raise ModelLoadError(f"Failed to load face detection models: {e}") from e

            self._state = ModelState.READY
            logger.info("Face detection models ready")

    async def detect(self, image: np.ndarray) -> List[DetectedFace]:
        """Detect faces, falling back to the next tier when a tier finds none.

        Returns:
            Faces sorted largest first, empty when no tier finds a face

        Raises:
            ModelLoadError: If initialize() has not completed successfully
        """
        if not self.is_ready:
            raise ModelLoadError(
                "Face detection models are not initialized",
                details={"state": self._state.value},
            )

        for tier, detector in enumerate(self._detectors):
            faces = await detector.detect(image)
            if faces:
                logger.info("Faces detected", tier=tier, faces_found=len(faces))
                return sort_by_prominence(faces)[:self._max_faces]
            logger.debug("No faces found by detector tier", tier=tier)

        logger.info("No faces detected with any detector tier")
        return []
