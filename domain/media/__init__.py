"""Media domain exports."""
from .entities import AssetState, MediaAsset
from .presets import THUMBNAIL_SIZES, DEFAULT_DERIVATIVE_FORMAT, default_quality
from .value_objects import (
    Dimensions,
    FitMode,
    ImageDerivativeSpec,
    ImageDetails,
    ImageFormat,
    Position,
    ProcessedImage,
    ValidationResult,
)

__all__ = [
    "AssetState",
    "DEFAULT_DERIVATIVE_FORMAT",
    "Dimensions",
    "FitMode",
    "ImageDerivativeSpec",
    "ImageDetails",
    "ImageFormat",
    "MediaAsset",
    "Position",
    "ProcessedImage",
    "THUMBNAIL_SIZES",
    "ValidationResult",
    "default_quality",
]
