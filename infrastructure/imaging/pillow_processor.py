"""Pillow-backed image validation and transcoding.

Both entry points are synchronous and CPU-bound; callers push them to a
worker thread. Neither touches storage.
"""
from __future__ import annotations

from io import BytesIO
from pathlib import PurePosixPath
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from core.config import ImageSettings
from core.logging_config import get_logger
from domain.media import (
    Dimensions,
    FitMode,
    ImageDerivativeSpec,
    ImageDetails,
    ImageFormat,
    ProcessedImage,
    ValidationResult,
    default_quality,
)

logger = get_logger(__name__)

_RESAMPLE = Image.Resampling.LANCZOS
_PIL_FORMATS = {
    ImageFormat.JPEG: "JPEG",
    ImageFormat.PNG: "PNG",
    ImageFormat.WEBP: "WEBP",
    ImageFormat.AVIF: "AVIF",
}
# Decoder names Pillow reports for containers of a format we encode
_DECODED_AS = {"MPO": "JPEG"}


def source_format(pil_format: Optional[str]) -> str:
    """Lower-cased format name of a decoded image, camera MPO read as JPEG."""
    name = (pil_format or "").upper()
    return _DECODED_AS.get(name, name).lower()


def estimate_quality(fmt: str, size_bytes: int, width: int, height: int) -> int:
    """Heuristic 0..100 score from bits per pixel.

    Lossy formats score higher with more bits per pixel; PNG is lossless
    and floors at 70.
    """
    if width <= 0 or height <= 0:
        return 0
    bpp = size_bytes * 8 / (width * height)
    if fmt in ("jpeg", "jpg"):
        score = min(100.0, max(0.0, bpp * 4))
    elif fmt == "png":
        score = min(100.0, max(70.0, bpp * 2))
    elif fmt == "webp":
        score = min(100.0, max(0.0, bpp * 5))
    else:
        score = 50.0
    return round(score)


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _normalize_mode(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA"):
        return img
    return img.convert("RGBA" if _has_alpha(img) else "RGB")


def _flatten(img: Image.Image, background: str) -> Image.Image:
    """Composite transparency onto a solid background for formats without alpha."""
    if img.mode != "RGBA":
        return img.convert("RGB")
    canvas = Image.new("RGB", img.size, background)
    canvas.paste(img, mask=img.getchannel("A"))
    return canvas


def target_box(
    width: int,
    height: int,
    spec: ImageDerivativeSpec,
) -> Optional[tuple[int, int]]:
    """Requested box, deriving a missing dimension from the aspect ratio."""
    if spec.width is None and spec.height is None:
        return None
    if spec.width is not None and spec.height is not None:
        return spec.width, spec.height
    if spec.width is not None:
        return spec.width, max(1, round(height * spec.width / width))
    return max(1, round(width * spec.height / height)), spec.height


class PillowImageProcessor:
    """ImageProcessorPort implementation using Pillow."""

    def __init__(self, settings: Optional[ImageSettings] = None):
        self.settings = settings or ImageSettings()

    def validate(self, buffer: bytes, filename: str) -> ValidationResult:
        """Check size, extension and dimensions; score quality. Never raises for bad input."""
        s = self.settings
        errors: list[str] = []
        warnings: list[str] = []
        details = ImageDetails(size_bytes=len(buffer))

        if len(buffer) > s.max_size_bytes:
            errors.append(
                f"File size {len(buffer) / 1024 / 1024:.1f}MB exceeds maximum "
                f"of {s.max_size_bytes / 1024 / 1024:.0f}MB"
            )

        ext = PurePosixPath(filename).suffix.lower().lstrip(".")
        if ext not in s.allowed_formats:
            errors.append(
                f"Invalid format: {ext or 'none'}. Allowed: {', '.join(s.allowed_formats)}"
            )

        try:
            with Image.open(BytesIO(buffer)) as img:
                width, height = img.size
                fmt = source_format(img.format) or ext
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            errors.append(f"Unable to read image: {e}")
            return ValidationResult(valid=False, errors=errors, warnings=warnings, details=details)

        details.format = fmt
        details.dimensions = Dimensions(width, height)

        if width < s.min_width or height < s.min_height:
            errors.append(
                f"Image dimensions {width}x{height} are too small. "
                f"Minimum: {s.min_width}x{s.min_height}"
            )
        elif width < s.recommended_width or height < s.recommended_height:
            warnings.append(
                f"Image dimensions {width}x{height} are below recommended "
                f"{s.recommended_width}x{s.recommended_height}"
            )

        details.quality_score = estimate_quality(fmt, len(buffer), width, height)
        threshold = s.quality_warning_threshold
        if threshold is not None and details.quality_score < threshold:
            warnings.append(
                f"Image quality score {details.quality_score} is below {threshold}"
            )

        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            details=details,
        )

    def process(self, buffer: bytes, spec: ImageDerivativeSpec) -> ProcessedImage:
        """Decode, optionally rotate and resize, then encode.

        Without ``spec.format`` the source format is kept (PNG when the
        source format has no encoder here).
        """
        with Image.open(BytesIO(buffer)) as src:
            src.load()
            try:
                fmt = spec.format or ImageFormat.parse(source_format(src.format))
            except ValueError:
                fmt = ImageFormat.PNG
            img = ImageOps.exif_transpose(src) if spec.auto_rotate else src.copy()

        img = _normalize_mode(img)
        box = target_box(img.width, img.height, spec)
        if box is not None:
            img = self._resize(img, box, spec)

        quality = spec.quality or default_quality(fmt)
        data = self._encode(img, fmt, quality, spec.background)
        logger.debug(
            "Processed image",
            derivative=spec.name,
            format=fmt.value,
            width=img.width,
            height=img.height,
            size=len(data),
        )
        return ProcessedImage(data=data, width=img.width, height=img.height, format=fmt)

    def _resize(self, img: Image.Image, box: tuple[int, int], spec: ImageDerivativeSpec) -> Image.Image:
        tw, th = box
        w, h = img.size
        fit = spec.fit
        # A single given dimension always means a proportional resize
        if spec.width is None or spec.height is None:
            fit = FitMode.FILL

        if fit is FitMode.INSIDE or fit is FitMode.OUTSIDE:
            pick = min if fit is FitMode.INSIDE else max
            scale = pick(tw / w, th / h)
            if spec.without_enlargement and scale > 1:
                return img
            return img.resize((max(1, round(w * scale)), max(1, round(h * scale))), _RESAMPLE)

        if spec.without_enlargement and (tw > w or th > h):
            return img

        if fit is FitMode.COVER:
            return ImageOps.fit(img, (tw, th), method=_RESAMPLE, centering=spec.position.centering)
        if fit is FitMode.CONTAIN:
            color = spec.background
            return ImageOps.pad(
                img, (tw, th), method=_RESAMPLE, color=color, centering=spec.position.centering
            )
        return img.resize((tw, th), _RESAMPLE)

    def _encode(self, img: Image.Image, fmt: ImageFormat, quality: int, background: str) -> bytes:
        out = BytesIO()
        pil_format = _PIL_FORMATS[fmt]
        if fmt is ImageFormat.JPEG:
            _flatten(img, background).save(out, pil_format, quality=quality, optimize=True, progressive=True)
        elif fmt is ImageFormat.PNG:
            img.save(out, pil_format, optimize=True)
        else:
            img.save(out, pil_format, quality=quality)
        return out.getvalue()
