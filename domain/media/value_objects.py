"""Image derivative value objects."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class FitMode(str, Enum):
    """How a source image is mapped onto the requested box."""

    COVER = "cover"  # fill the box, crop overflow
    CONTAIN = "contain"  # fit inside the box, letterbox with background
    FILL = "fill"  # stretch to the exact box, ignore aspect ratio
    INSIDE = "inside"  # fit inside the box, no letterbox
    OUTSIDE = "outside"  # cover the box, no crop


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @classmethod
    def parse(cls, value: str) -> "ImageFormat":
        v = value.lower().lstrip(".")
        if v == "jpg":
            v = "jpeg"
        return cls(v)


class Position(str, Enum):
    """Crop / letterbox anchor."""

    CENTER = "center"
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"
    TOP_LEFT = "top left"
    TOP_RIGHT = "top right"
    BOTTOM_LEFT = "bottom left"
    BOTTOM_RIGHT = "bottom right"

    @property
    def centering(self) -> tuple[float, float]:
        """(x, y) fractions as used by ``PIL.ImageOps.fit`` / ``pad``."""
        return _CENTERING[self]

    @classmethod
    def parse(cls, value: str) -> "Position":
        v = value.lower().replace("_", " ").replace("-", " ").strip()
        v = _ALIASES.get(v, v)
        return cls(v)


_CENTERING = {
    Position.CENTER: (0.5, 0.5),
    Position.TOP: (0.5, 0.0),
    Position.BOTTOM: (0.5, 1.0),
    Position.LEFT: (0.0, 0.5),
    Position.RIGHT: (1.0, 0.5),
    Position.TOP_LEFT: (0.0, 0.0),
    Position.TOP_RIGHT: (1.0, 0.0),
    Position.BOTTOM_LEFT: (0.0, 1.0),
    Position.BOTTOM_RIGHT: (1.0, 1.0),
}

_ALIASES = {
    "centre": "center",
    "north": "top",
    "south": "bottom",
    "west": "left",
    "east": "right",
    "northwest": "top left",
    "northeast": "top right",
    "southwest": "bottom left",
    "southeast": "bottom right",
    "left top": "top left",
    "right top": "top right",
    "left bottom": "bottom left",
    "right bottom": "bottom right",
}


@dataclass(frozen=True, slots=True)
class ImageDerivativeSpec:
    """Immutable description of one derivative.

    ``width``/``height`` may be None to keep the aspect ratio from the
    other dimension; both None means no resize.
    """

    name: str
    width: Optional[int] = None
    height: Optional[int] = None
    fit: FitMode = FitMode.COVER
    quality: Optional[int] = None
    format: Optional[ImageFormat] = None
    position: Position = Position.CENTER
    background: str = "white"
    without_enlargement: bool = False
    auto_rotate: bool = True

    def __post_init__(self) -> None:
        for dim in (self.width, self.height):
            if dim is not None and dim <= 0:
                raise ValueError(f"Derivative dimensions must be positive: {self.name}")
        if self.quality is not None and not 1 <= self.quality <= 100:
            raise ValueError(f"Quality must be within 1..100: {self.quality}")


@dataclass(frozen=True, slots=True)
class Dimensions:
    width: int
    height: int


@dataclass(slots=True)
class ImageDetails:
    format: Optional[str] = None
    size_bytes: Optional[int] = None
    dimensions: Optional[Dimensions] = None
    quality_score: Optional[int] = None


@dataclass(slots=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    details: ImageDetails = field(default_factory=ImageDetails)


@dataclass(frozen=True, slots=True)
class ProcessedImage:
    data: bytes
    width: int
    height: int
    format: ImageFormat

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def content_type(self) -> str:
        return self.format.content_type
