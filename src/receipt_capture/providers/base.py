"""Abstract base for receipt field extractors."""

from abc import ABC, abstractmethod

from receipt_capture.fields import ExtractedFields


class BaseExtractor(ABC):
    @abstractmethod
    def extract(self, image_bytes: bytes) -> ExtractedFields:
        """Accept a downsampled JPEG and return whatever fields could be read.

        Failures of any kind are raised as ``ExtractionError``.
        """
        ...
