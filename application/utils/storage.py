"""Key naming policy and namespace conventions for stored objects.

Keys are case-sensitive, ``/``-delimited strings with no leading or
trailing slash. Every upload gets a fresh physical key; derivative keys
are pure functions of the source name, the derivative name and format.
"""
from __future__ import annotations

import itertools
import mimetypes
import re
import secrets
import time
import uuid
from pathlib import PurePosixPath
from typing import Optional

from domain.common.exceptions import InvalidKeyException
from domain.media.value_objects import ImageFormat

ROOT_DIRS = ("public", "private")

STORAGE_FOLDERS = {
    "products": "products",
    "categories": "categories",
    "suppliers": "suppliers",
    "catalogs": "catalogs",
    "temp": "temp",
    "pending": "temp/pending",
    "thumbnails": "thumbnails",
    "optimized": "optimized",
}

MAX_BASENAME_LENGTH = 20

# Final segments the directory emulator writes and hides from listings
RESERVED_NAMES = (".dir", ".folder_marker", ".directory_marker", ".keep")

_UNSAFE = re.compile(r"[^a-zA-Z0-9._-]")
_UNSAFE_BASENAME = re.compile(r"[^a-zA-Z0-9_-]")
_WHITESPACE = re.compile(r"\s+")
_EXTRA_TYPES = {".webp": "image/webp", ".avif": "image/avif"}

# Monotonic per-process sequence; keeps keys distinct inside one millisecond
_sequence = itertools.count()


def split_extension(filename: str) -> tuple[str, str]:
    """Return (stem, lower-cased extension including the dot)."""
    path = PurePosixPath(filename)
    return path.stem, path.suffix.lower()


def sanitize_filename(filename: str) -> str:
    """Drop any path components and replace characters unsafe in keys."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    name = _WHITESPACE.sub("_", name)
    name = _UNSAFE.sub("-", name).lstrip(".")
    return name or "file"


def generate_unique_filename(filename: str) -> str:
    """Human-traceable unique name: ``<epoch-ms>-<random>-<basename><ext>``."""
    stem, ext = split_extension(sanitize_filename(filename))
    base = _UNSAFE_BASENAME.sub("-", stem)[:MAX_BASENAME_LENGTH] or "file"
    timestamp = int(time.time() * 1000)
    random_part = f"{secrets.randbelow(1_000_000):06d}{next(_sequence) % 1000:03d}"
    return f"{timestamp}-{random_part}-{base}{ext}"


def generate_unique_key(filename: str) -> str:
    """Opaque unique name: ``<uuid4><ext>``."""
    _, ext = split_extension(filename)
    return f"{uuid.uuid4()}{ext}"


def validate_key(key: str) -> str:
    """Check key shape and return it unchanged."""
    if not key or key.startswith("/") or key.endswith("/"):
        raise InvalidKeyException("Key must be non-empty without leading or trailing '/'", key)
    for segment in key.split("/"):
        if segment in ("", ".", ".."):
            raise InvalidKeyException(f"Invalid key segment in {key!r}", key)
    return key


def validate_object_key(key: str) -> str:
    """Like ``validate_key``, for keys about to be written by a caller."""
    validate_key(key)
    if key.rsplit("/", 1)[-1] in RESERVED_NAMES:
        raise InvalidKeyException(f"Key name is reserved for directory markers: {key!r}", key)
    return key


def build_object_key(*parts: str) -> str:
    """Join path parts into a key, trimming slashes at each boundary."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    if not cleaned:
        raise InvalidKeyException("Cannot build an empty key")
    return validate_key("/".join(cleaned))


def folder_path(root: str, folder: str, *rest: str) -> str:
    """``<root>/<standard folder>/<rest...>``; unknown folder names pass through."""
    if root not in ROOT_DIRS:
        raise InvalidKeyException(f"Unknown root directory: {root}")
    return build_object_key(root, STORAGE_FOLDERS.get(folder, folder), *rest)


def base_name(key: str) -> str:
    """Final key segment without extension."""
    return PurePosixPath(key).stem


def derivative_key(
    source_key: str,
    name: str,
    fmt: ImageFormat,
    root: str = "public",
    folder: str = "thumbnails",
) -> str:
    """``<root>/thumbnails/<base>_<name>.<fmt>``."""
    return folder_path(root, folder, f"{base_name(source_key)}_{name}.{fmt.value}")


def optimized_key(source_key: str, fmt: ImageFormat, root: str = "public") -> str:
    """``<root>/optimized/<base>.<fmt>``."""
    return folder_path(root, "optimized", f"{base_name(source_key)}.{fmt.value}")


def dimension_key(
    source_key: str,
    width: Optional[int],
    height: Optional[int],
    fmt: ImageFormat,
    root: str = "public",
) -> str:
    """``<root>/optimized/<base>_<w|auto>x<h|auto>.<fmt>``."""
    size = f"{width or 'auto'}x{height or 'auto'}"
    return folder_path(root, "optimized", f"{base_name(source_key)}_{size}.{fmt.value}")


def guess_content_type(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    ctype, _ = mimetypes.guess_type(filename)
    return ctype or "application/octet-stream"
