"""Standard derivative sizes used by the storefront."""
from __future__ import annotations

from .value_objects import FitMode, ImageDerivativeSpec, ImageFormat

THUMBNAIL_SIZES: dict[str, ImageDerivativeSpec] = {
    "tiny": ImageDerivativeSpec("tiny", 80, 80, FitMode.COVER),
    "small": ImageDerivativeSpec("small", 150, 150, FitMode.COVER),
    "medium": ImageDerivativeSpec("medium", 300, 300, FitMode.COVER),
    "large": ImageDerivativeSpec("large", 600, 600, FitMode.COVER),
    "card": ImageDerivativeSpec("card", 400, 300, FitMode.CONTAIN),
    "banner": ImageDerivativeSpec("banner", 1200, 400, FitMode.CONTAIN),
    "preview": ImageDerivativeSpec("preview", 800, 600, FitMode.CONTAIN),
}

DEFAULT_DERIVATIVE_FORMAT = ImageFormat.WEBP
DEFAULT_QUALITY = 80
AVIF_DEFAULT_QUALITY = 50


def default_quality(fmt: ImageFormat) -> int:
    return AVIF_DEFAULT_QUALITY if fmt is ImageFormat.AVIF else DEFAULT_QUALITY
