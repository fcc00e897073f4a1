"""
InsightFace-based descriptor extractor.

This module provides the concrete DescriptorExtractor used in deployments. It
decodes the image, runs InsightFace detection plus embedding and insists on
exactly one confident face.

Example:
    ```python
    extractor = InsightFaceDescriptorExtractor()

    with open("image.jpg", "rb") as f:
        descriptor = await extractor.extract_descriptor(f.read())
    ```

Note:
    This implementation uses CPU inference by default. For GPU support,
    pass ``providers=["CUDAExecutionProvider"]``.
"""
import asyncio
import math
from typing import Any, List, Optional, Sequence

import cv2
import numpy as np
from insightface.app import FaceAnalysis

from faceid.core.config import settings
from faceid.core.exceptions import (
    ExtractorUnavailableError,
    InvalidImageError,
    ModelLoadError,
    MultipleFacesError,
    NoFaceDetectedError,
)
from faceid.core.logging import get_logger
from faceid.domain.entities.identity import Descriptor, as_descriptor
from faceid.domain.interfaces.recognition.descriptor_extractor import DescriptorExtractor

logger = get_logger(__name__)


class InsightFaceDescriptorExtractor(DescriptorExtractor):
    """
    Descriptor extractor backed by an InsightFace model pack.

    Descriptors are the L2-normalised embeddings (``normed_embedding``), so
    Euclidean distances fall in [0, 2] and the default match threshold of 0.5
    is meaningful.

    Attributes:
        model: InsightFace FaceAnalysis instance (or any object with ``get(img)``)
        min_confidence: Detections below this score are ignored
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        min_confidence: Optional[float] = None,
        providers: Sequence[str] = ("CPUExecutionProvider",),
    ) -> None:
        """Initialize the extractor, loading the model pack unless one is given.

        Args:
            model: Preloaded model exposing ``get(image)``
            min_confidence: Minimum detection score, defaults to settings.MIN_FACE_CONFIDENCE
            providers: ONNX runtime execution providers

        Raises:
            ModelLoadError: If the model pack cannot be loaded
        """
        self.min_confidence = (
            settings.MIN_FACE_CONFIDENCE if min_confidence is None else min_confidence
        )
        if model is not None:
            self.model = model
            return
        try:
            self.model = FaceAnalysis(
                name=settings.MODEL_PATH,
                root=settings.MODEL_CACHE_DIR,
                providers=list(providers)
            )
            # Detection size affects accuracy significantly
            self.model.prepare(ctx_id=0, det_size=(640, 640))
        except Exception as e:
            logger.error("Failed to load InsightFace model", model=settings.MODEL_PATH, error=str(e))
            raise ModelLoadError(f"Failed to load model {settings.MODEL_PATH}: {str(e)}")

    def _load_and_validate_image(self, image_bytes: bytes) -> np.ndarray:
        """Decode image bytes and downscale images above the pixel budget.

        Raises:
            InvalidImageError: If the bytes cannot be decoded or resized
        """
        if not image_bytes:
            raise InvalidImageError("Empty image")

        nparr = np.frombuffer(image_bytes, np.uint8)
        try:
            img = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
        except cv2.error as e:
            raise InvalidImageError(f"Failed to decode image: {str(e)}")
        if img is None:
            raise InvalidImageError("Failed to decode image")

        height, width = img.shape[:2]
        pixels = width * height

        # Only resize if image is too large
        if pixels > settings.MAX_IMAGE_PIXELS:
            scale = math.sqrt(settings.MAX_IMAGE_PIXELS / pixels)
            new_width = max(1, int(width * scale))
            new_height = max(1, int(height * scale))

            logger.info(
                "Resizing large image",
                original_size=(width, height),
                new_size=(new_width, new_height)
            )

            try:
                img = cv2.resize(
                    img,
                    (new_width, new_height),
                    interpolation=cv2.INTER_AREA
                )
            except cv2.error as e:
                raise InvalidImageError(
                    f"Failed to resize image: {str(e)}",
                    details={"original_size": (width, height)},
                )

        return img

    def _detect(self, image: np.ndarray) -> List[Any]:
        """Run the model and keep detections above the confidence floor."""
        try:
            faces = self.model.get(image) or []
        except Exception as e:
            logger.error(
                "Face processing failed",
                error=str(e),
                image_shape=image.shape,
                exc_info=True
            )
            raise ExtractorUnavailableError(f"Face model failed: {str(e)}")

        confident = [f for f in faces if float(f.det_score) >= self.min_confidence]
        logger.debug(
            "Face detection results",
            faces_found=len(faces),
            faces_kept=len(confident),
            min_confidence=self.min_confidence
        )
        return confident

    def _extract(self, image_bytes: bytes) -> Descriptor:
        img = self._load_and_validate_image(image_bytes)
        faces = self._detect(img)

        if not faces:
            raise NoFaceDetectedError("No face detected in the image")
        if len(faces) > 1:
            raise MultipleFacesError(
                "Multiple faces detected. Please ensure only one face is visible.",
                details={"faces": len(faces)},
            )

        face = faces[0]
        embedding = getattr(face, "normed_embedding", None)
        if embedding is None:
            embedding = face.embedding
        try:
            descriptor = as_descriptor(embedding)
        except ValueError as e:
            logger.error("Model returned an unusable embedding", model=settings.MODEL_PATH, error=str(e))
            raise ExtractorUnavailableError(
                f"Model returned an unusable embedding: {str(e)}",
                details={"model": settings.MODEL_PATH},
            )
        if descriptor.shape[0] != settings.DESCRIPTOR_DIMENSION:
            raise ExtractorUnavailableError(
                f"Model produced {descriptor.shape[0]}-dimensional descriptors, "
                f"expected {settings.DESCRIPTOR_DIMENSION}",
                details={"model": settings.MODEL_PATH},
            )
        return descriptor

    async def extract_descriptor(self, image_bytes: bytes) -> Descriptor:
        """Extract the single face descriptor without blocking the event loop."""
        return await asyncio.to_thread(self._extract, image_bytes)
