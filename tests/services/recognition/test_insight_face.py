"""Tests for the InsightFace descriptor extractor."""
from types import SimpleNamespace

import numpy as np
import pytest

cv2 = pytest.importorskip("cv2")
pytest.importorskip("insightface")

from faceid.core.config import settings  # noqa: E402
from faceid.core.exceptions import (  # noqa: E402
    ExtractorUnavailableError,
    InvalidImageError,
    MultipleFacesError,
    NoFaceDetectedError,
)
from faceid.services.recognition.insight_face import InsightFaceDescriptorExtractor  # noqa: E402


class StubModel:
    """Stands in for FaceAnalysis; returns preset detections."""

    def __init__(self, faces=None, error=None):
        self.faces = faces or []
        self.error = error
        self.seen_shapes = []

    def get(self, image):
        self.seen_shapes.append(image.shape)
        if self.error:
            raise self.error
        return self.faces


def detection(score: float, seed: int = 0):
    embedding = np.random.default_rng(seed).normal(size=512)
    return SimpleNamespace(det_score=score, normed_embedding=embedding / np.linalg.norm(embedding))


def encode_image(width: int = 64, height: int = 48) -> bytes:
    ok, buffer = cv2.imencode(".jpg", np.full((height, width, 3), 127, dtype=np.uint8))
    assert ok
    return buffer.tobytes()


class TestInsightFaceDescriptorExtractor:
    """Test suite for single-face descriptor extraction."""

    async def test_single_face_yields_descriptor(self):
        face = detection(0.9)
        extractor = InsightFaceDescriptorExtractor(model=StubModel([face]), min_confidence=0.6)

        descriptor = await extractor.extract_descriptor(encode_image())

        assert descriptor.shape == (512,)
        assert np.allclose(descriptor, face.normed_embedding)
        assert descriptor.flags.writeable is False

    async def test_low_confidence_faces_are_ignored(self):
        faces = [detection(0.9, seed=1), detection(0.3, seed=2)]
        extractor = InsightFaceDescriptorExtractor(model=StubModel(faces), min_confidence=0.6)

        descriptor = await extractor.extract_descriptor(encode_image())
        assert np.allclose(descriptor, faces[0].normed_embedding)

    async def test_no_face(self):
        extractor = InsightFaceDescriptorExtractor(model=StubModel([detection(0.2)]), min_confidence=0.6)

        with pytest.raises(NoFaceDetectedError):
            await extractor.extract_descriptor(encode_image())

    async def test_multiple_faces(self):
        faces = [detection(0.9, seed=1), detection(0.8, seed=2)]
        extractor = InsightFaceDescriptorExtractor(model=StubModel(faces), min_confidence=0.6)

        with pytest.raises(MultipleFacesError) as exc_info:
            await extractor.extract_descriptor(encode_image())
        assert exc_info.value.details == {"faces": 2}

    @pytest.mark.parametrize("image_bytes", [b"", b"definitely not an image"])
    async def test_undecodable_image(self, image_bytes):
        extractor = InsightFaceDescriptorExtractor(model=StubModel([detection(0.9)]))

        with pytest.raises(InvalidImageError):
            await extractor.extract_descriptor(image_bytes)

    async def test_model_failure_is_unavailability(self):
        extractor = InsightFaceDescriptorExtractor(model=StubModel(error=RuntimeError("onnx crashed")))

        with pytest.raises(ExtractorUnavailableError):
            await extractor.extract_descriptor(encode_image())

    async def test_large_images_are_downscaled(self, monkeypatch):
        monkeypatch.setattr(settings, "MAX_IMAGE_PIXELS", 1000)
        model = StubModel([detection(0.9)])
        extractor = InsightFaceDescriptorExtractor(model=model)

        await extractor.extract_descriptor(encode_image(width=200, height=100))

        height, width = model.seen_shapes[0][:2]
        assert width * height <= 1000
        assert width > height

    async def test_wrong_model_dimension_is_unavailability(self):
        face = SimpleNamespace(det_score=0.9, normed_embedding=np.ones(128) / np.sqrt(128))
        extractor = InsightFaceDescriptorExtractor(model=StubModel([face]))

        with pytest.raises(ExtractorUnavailableError):
            await extractor.extract_descriptor(encode_image())

    async def test_non_finite_embedding_is_unavailability(self):
        face = SimpleNamespace(det_score=0.9, normed_embedding=np.full(512, np.nan))
        extractor = InsightFaceDescriptorExtractor(model=StubModel([face]))

        with pytest.raises(ExtractorUnavailableError) as exc_info:
            await extractor.extract_descriptor(encode_image())
        assert "unusable embedding" in str(exc_info.value)

    @pytest.mark.parametrize("operation", ["imdecode", "resize"])
    async def test_codec_errors_are_invalid_images(self, monkeypatch, operation):
        def fail(*args, **kwargs):
            raise cv2.error("corrupt stream")

        image = encode_image(width=200, height=100)
        monkeypatch.setattr(settings, "MAX_IMAGE_PIXELS", 1000)
        monkeypatch.setattr(cv2, operation, fail)
        model = StubModel([detection(0.9)])
        extractor = InsightFaceDescriptorExtractor(model=model)

        with pytest.raises(InvalidImageError):
            await extractor.extract_descriptor(image)
        assert model.seen_shapes == []
