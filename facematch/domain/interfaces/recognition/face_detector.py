"""Face detector interface."""
from abc import ABC, abstractmethod
from typing import List

import numpy as np

from ...entities.face import DetectedFace


class FaceDetector(ABC):
    """Interface for a detector that turns pixels into faces with embeddings."""

    @abstractmethod
    def load(self) -> None:
        """
        Load the underlying model. Blocking; called once by the orchestrator.

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        pass

    @abstractmethod
    async def detect(self, image: np.ndarray) -> List[DetectedFace]:
        """
        Detect faces and extract their embeddings.

        Args:
            image: Decoded BGR image

        Returns:
            Detected faces in detector order, empty when none pass the
            detector's confidence threshold. Bounding boxes are in pixels
            of the given image.
        """
        pass
