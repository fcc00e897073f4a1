"""Descriptor extractor interface."""
from abc import ABC, abstractmethod

from ...entities.identity import Descriptor


class DescriptorExtractor(ABC):
    """Interface for turning one image into exactly one face descriptor."""

    @abstractmethod
    async def extract_descriptor(self, image_bytes: bytes) -> Descriptor:
        """
        Detect the single face in the image and return its descriptor.

        Args:
            image_bytes: Raw image data

        Returns:
            Immutable descriptor of the detected face

        Raises:
            InvalidImageError: If the image cannot be decoded
            NoFaceDetectedError: If no face is found
            MultipleFacesError: If more than one face is found
            ExtractorUnavailableError: If the underlying model cannot run
        """
        pass
