"""Tests for the InsightFace detection tier."""
from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

from facematch.core.config import settings
from facematch.core.exceptions import ModelLoadError
from facematch.services.detection import DetectionOrchestrator, ModelState
from facematch.services.recognition import insight_face
from facematch.services.recognition.insight_face import InsightFaceDetector


def insight_result(bbox, embedding=None, det_score=0.9):
    """Mimic the Face objects returned by FaceAnalysis.get."""
    if embedding is None:
        embedding = np.full(settings.EMBEDDING_DIM, 3.0, dtype=np.float32)
    return SimpleNamespace(
        bbox=np.array(bbox, dtype=np.float32),
        embedding=embedding,
        normed_embedding=embedding / np.linalg.norm(embedding),
        det_score=det_score,
    )


def recognition_head(length):
    """Stand-in for the ArcFace model InsightFace exposes under models['recognition']."""
    return SimpleNamespace(output_shape=(1, length))


@pytest.fixture
def face_analysis(monkeypatch):
    """Replace FaceAnalysis so no model files are needed."""
    model = MagicMock()
    model.models = {'recognition': recognition_head(settings.EMBEDDING_DIM)}
    factory = MagicMock(return_value=model)
    monkeypatch.setattr(insight_face, "FaceAnalysis", factory)
    return factory, model


@pytest.fixture
def detector(face_analysis):
    detector = InsightFaceDetector(det_size=416, det_thresh=0.6)
    detector.load()
    return detector


class TestInsightFaceDetector:
    """Test suite for the InsightFace detection tier."""

    def test_load_prepares_model_with_tier_settings(self, face_analysis):
        factory, model = face_analysis
        detector = InsightFaceDetector(det_size=640, det_thresh=0.3)

        detector.load()

        assert detector.model is model
        assert factory.call_args.kwargs["allowed_modules"] == ['detection', 'recognition']
        model.prepare.assert_called_once_with(ctx_id=0, det_size=(640, 640), det_thresh=0.3)

    def test_load_failure_raises_model_load_error(self, face_analysis):
        factory, _ = face_analysis
        factory.side_effect = RuntimeError("model files missing")

        with pytest.raises(ModelLoadError):
            InsightFaceDetector(det_size=416, det_thresh=0.5).load()

    def test_load_rejects_embedding_length_mismatch(self, face_analysis):
        """Should fail to load a recognition model whose output length is not EMBEDDING_DIM."""
        _, model = face_analysis
        model.models = {'recognition': recognition_head(settings.EMBEDDING_DIM + 1)}
        detector = InsightFaceDetector(det_size=416, det_thresh=0.5)

        with pytest.raises(ModelLoadError) as exc_info:
            detector.load()

        assert exc_info.value.details["length"] == settings.EMBEDDING_DIM + 1
        assert exc_info.value.details["expected"] == settings.EMBEDDING_DIM
        assert detector.model is None

    def test_load_rejects_model_without_recognition(self, face_analysis):
        _, model = face_analysis
        model.models = {}

        with pytest.raises(ModelLoadError):
            InsightFaceDetector(det_size=416, det_thresh=0.5).load()

    async def test_orchestrator_fails_on_embedding_length_mismatch(self, face_analysis):
        """Should leave the orchestrator FAILED instead of serving unmatchable embeddings."""
        _, model = face_analysis
        model.models = {'recognition': recognition_head(settings.EMBEDDING_DIM // 4)}
        orchestrator = DetectionOrchestrator([InsightFaceDetector(det_size=416, det_thresh=0.6)])

        with pytest.raises(ModelLoadError):
            await orchestrator.initialize()

        assert orchestrator.state == ModelState.FAILED

    async def test_detect_before_load_raises(self, blank_image):
        with pytest.raises(ModelLoadError):
            await InsightFaceDetector(det_size=416, det_thresh=0.5).detect(blank_image)

    async def test_detect_converts_boxes_to_pixels(self, detector, face_analysis, blank_image):
        """Should turn x1, y1, x2, y2 corners into a pixel box with width and height."""
        _, model = face_analysis
        model.get.return_value = [insight_result([10.2, 20.0, 50.0, 80.4], det_score=0.87)]

        faces = await detector.detect(blank_image)

        assert len(faces) == 1
        box = faces[0].bounding_box
        assert (box.x, box.y, box.width, box.height) == (10, 20, 40, 60)
        assert faces[0].confidence == pytest.approx(0.87)
        assert faces[0].embedding.shape == (settings.EMBEDDING_DIM,)
        assert faces[0].embedding.dtype == np.float64

    async def test_detect_uses_unit_length_embedding(self, detector, face_analysis, blank_image):
        """Should hand out the normalized embedding, not the raw model output."""
        _, model = face_analysis
        model.get.return_value = [insight_result([0, 0, 10, 10])]

        faces = await detector.detect(blank_image)

        assert np.linalg.norm(faces[0].embedding) == pytest.approx(1.0)

    async def test_faces_without_embedding_are_dropped(self, detector, face_analysis, blank_image):
        _, model = face_analysis
        model.get.return_value = [
            insight_result([0, 0, 10, 10]),
            SimpleNamespace(
                bbox=np.array([20, 20, 30, 30]), embedding=None, normed_embedding=None, det_score=0.9
            ),
        ]

        faces = await detector.detect(blank_image)

        assert len(faces) == 1

    async def test_no_faces(self, detector, face_analysis, blank_image):
        _, model = face_analysis
        model.get.return_value = []

        assert await detector.detect(blank_image) == []
