"""Image processing port. Implementations are pure functions over bytes."""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.media import ImageDerivativeSpec, ProcessedImage, ValidationResult


@runtime_checkable
class ImageProcessorPort(Protocol):
    def validate(self, buffer: bytes, filename: str) -> ValidationResult: ...

    def process(self, buffer: bytes, spec: ImageDerivativeSpec) -> ProcessedImage: ...
