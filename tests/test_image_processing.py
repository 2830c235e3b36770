from io import BytesIO

import pytest
from PIL import Image

from core.config import ImageSettings
from domain.media import FitMode, ImageDerivativeSpec, ImageFormat, Position
from infrastructure.imaging.pillow_processor import PillowImageProcessor, estimate_quality, source_format

from fakes import make_image


def _size(data: bytes) -> tuple[int, int]:
    with Image.open(BytesIO(data)) as img:
        return img.size


def test_too_small_image_is_rejected(processor):
    result = processor.validate(make_image(100, 100), "tiny.png")

    assert result.valid is False
    assert any("too small" in e for e in result.errors)
    assert result.details.dimensions.width == 100


def test_oversized_file_is_rejected(processor):
    png = make_image(400, 400)
    padded = png + b"\0" * (6 * 1024 * 1024 - len(png))

    result = processor.validate(padded, "big.png")

    assert result.valid is False
    assert any("exceeds maximum" in e for e in result.errors)
    assert result.details.size_bytes == 6 * 1024 * 1024


def test_recommended_size_webp_is_valid_without_warnings(processor):
    result = processor.validate(make_image(1200, 1200, "WEBP"), "hero.webp")

    assert result.valid is True
    assert result.errors == []
    assert result.warnings == []
    assert result.details.format == "webp"
    assert 0 <= result.details.quality_score <= 100


def test_below_recommended_size_only_warns(processor):
    result = processor.validate(make_image(800, 600, "JPEG"), "photo.jpg")

    assert result.valid is True
    assert len(result.warnings) == 1


def test_disallowed_extension_and_garbage_bytes(processor):
    result = processor.validate(b"definitely not an image", "notes.gif")

    assert result.valid is False
    assert any("Invalid format" in e for e in result.errors)
    assert any("Unable to read image" in e for e in result.errors)


def test_quality_threshold_adds_warning():
    processor = PillowImageProcessor(ImageSettings(quality_warning_threshold=101))
    result = processor.validate(make_image(1200, 1200, "WEBP"), "hero.webp")
    assert result.valid is True
    assert any("quality score" in w for w in result.warnings)


def test_estimate_quality_is_bounded():
    assert estimate_quality("png", 10, 1000, 1000) == 70
    assert estimate_quality("jpeg", 10_000_000, 100, 100) == 100
    assert estimate_quality("gif", 1000, 10, 10) == 50
    assert estimate_quality("jpeg", 1000, 0, 10) == 0


@pytest.mark.parametrize(
    ("spec", "expected"),
    [
        (ImageDerivativeSpec("c", 300, 300, FitMode.COVER), (300, 300)),
        (ImageDerivativeSpec("p", 400, 300, FitMode.CONTAIN), (400, 300)),
        (ImageDerivativeSpec("f", 100, 50, FitMode.FILL), (100, 50)),
        (ImageDerivativeSpec("i", 300, 300, FitMode.INSIDE), (300, 150)),
        (ImageDerivativeSpec("o", 300, 300, FitMode.OUTSIDE), (600, 300)),
        (ImageDerivativeSpec("w", width=500), (500, 250)),
        (ImageDerivativeSpec("h", height=100), (200, 100)),
        (ImageDerivativeSpec("n"), (1000, 500)),
    ],
)
def test_fit_modes_produce_expected_dimensions(processor, spec, expected):
    source = make_image(1000, 500)
    result = processor.process(source, spec)

    assert (result.width, result.height) == expected
    assert _size(result.data) == expected


def test_without_enlargement_keeps_small_source(processor):
    spec = ImageDerivativeSpec("big", 2000, 2000, FitMode.COVER, without_enlargement=True)
    result = processor.process(make_image(300, 200), spec)
    assert (result.width, result.height) == (300, 200)


def test_output_format_and_content_type(processor):
    spec = ImageDerivativeSpec("w", 100, 100, format=ImageFormat.WEBP, quality=60)
    result = processor.process(make_image(400, 400, "JPEG"), spec)

    assert result.format is ImageFormat.WEBP
    assert result.content_type == "image/webp"
    with Image.open(BytesIO(result.data)) as img:
        assert img.format == "WEBP"


def test_transparent_png_flattens_to_jpeg(processor):
    source = make_image(200, 200, "PNG", color=(0, 0, 0, 0), mode="RGBA")
    spec = ImageDerivativeSpec("j", 100, 100, format=ImageFormat.JPEG, background="white")

    result = processor.process(source, spec)

    with Image.open(BytesIO(result.data)) as img:
        assert img.mode == "RGB"
        r, g, b = img.getpixel((50, 50))
        assert min(r, g, b) > 240


def test_source_format_is_kept_when_not_specified(processor):
    result = processor.process(make_image(300, 300, "JPEG"), ImageDerivativeSpec("k", 100, 100))
    assert result.format is ImageFormat.JPEG


def _camera_mpo(width: int, height: int) -> bytes:
    out = BytesIO()
    frames = [Image.new("RGB", (width, height), c) for c in ((10, 20, 30), (40, 50, 60))]
    frames[0].save(out, "MPO", save_all=True, append_images=frames[1:])
    return out.getvalue()


def test_multi_picture_jpeg_is_treated_as_jpeg(processor):
    data = _camera_mpo(1200, 1200)
    with Image.open(BytesIO(data)) as img:
        assert img.format == "MPO"

    result = processor.process(data, ImageDerivativeSpec("k", 100, 100))
    validation = processor.validate(data, "camera.jpg")

    assert result.format is ImageFormat.JPEG
    assert result.content_type == "image/jpeg"
    assert validation.valid is True
    assert validation.details.format == "jpeg"
    assert source_format("MPO") == "jpeg"
    assert source_format(None) == ""


def test_spec_rejects_bad_values():
    with pytest.raises(ValueError):
        ImageDerivativeSpec("bad", 0, 100)
    with pytest.raises(ValueError):
        ImageDerivativeSpec("bad", 100, 100, quality=101)


def test_position_and_format_parsing():
    assert Position.parse("northwest") is Position.TOP_LEFT
    assert Position.parse("left_top") is Position.TOP_LEFT
    assert Position.parse("centre") is Position.CENTER
    assert ImageFormat.parse(".JPG") is ImageFormat.JPEG
