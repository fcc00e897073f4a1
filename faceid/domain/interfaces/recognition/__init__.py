"""Recognition interfaces."""
from .descriptor_extractor import DescriptorExtractor

__all__ = ["DescriptorExtractor"]
