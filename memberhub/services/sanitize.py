"""Free-text cleanup for data that ends up in public committee listings."""

from urllib.parse import urlsplit

from markupsafe import Markup

ALLOWED_IMAGE_SCHEMES = {"", "http", "https"}


def strip_markup(value: str | None) -> str:
    """Drop every tag and comment, keeping the text content."""
    if not value:
        return ""
    return Markup(value).striptags()


def clean_image_path(raw_path: str | None) -> str | None:
    """Return the path if it is a well-formed relative or http(s) URL, else None."""
    if not raw_path:
        return None
    stripped = strip_markup(raw_path).strip()
    if not stripped or any(ch.isspace() or ord(ch) < 32 for ch in stripped):
        return None
    try:
        parts = urlsplit(stripped)
    except ValueError:
        return None
    if parts.scheme.lower() not in ALLOWED_IMAGE_SCHEMES:
        return None
    if parts.scheme and not parts.netloc:
        return None
    return stripped
