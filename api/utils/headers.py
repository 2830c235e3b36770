"""HTTP header helpers for serving stored objects."""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote


def sanitize_filename(filename: Optional[str], fallback: str) -> str:
    """Strip CR/LF, quotes and path separators for Content-Disposition."""
    if not filename:
        return fallback
    cleaned = filename.replace("\r", " ").replace("\n", " ").strip()
    cleaned = cleaned.replace('"', "").rsplit("/", 1)[-1]
    return cleaned or fallback


def build_content_disposition(mode: str, filename: str) -> str:
    """Build a Content-Disposition header value.

    Non-ASCII names are sent as an RFC 5987 ``filename*`` parameter with
    an ASCII-only ``filename`` kept for older clients.

    Args:
        mode: "inline" or "attachment"
        filename: suggested filename
    """
    safe = sanitize_filename(filename, "file")
    ascii_name = safe.encode("ascii", "ignore").decode() or "file"
    if ascii_name == safe:
        return f'{mode}; filename="{safe}"'
    return f"{mode}; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(safe)}"


def cache_control_for(key: str) -> str:
    """Public objects may be cached by shared caches; everything else is private."""
    if key.startswith("public/"):
        return "public, max-age=3600"
    return "private, no-store"
