"""Document page type detection for extraction requests."""

from pathlib import Path

import magic

# Page formats the extraction service accepts
SUPPORTED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/heic",
        "image/heif",
        "image/gif",
        "image/bmp",
        "image/tiff",
        "application/pdf",
    }
)

# File extensions as fallback
EXTENSION_TO_MIME: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".pdf": "application/pdf",
}


def detect_mime_type(
    file_content: bytes | None = None,
    filename: str | None = None,
) -> str:
    """
    Detect the MIME type of a page.

    Uses libmagic for content detection, falls back to extension, and
    finally to ``application/octet-stream``.
    """
    if file_content:
        mime = magic.from_buffer(file_content, mime=True)
        if mime in SUPPORTED_MIME_TYPES:
            return mime

    if filename:
        ext = Path(filename).suffix.lower()
        if ext in EXTENSION_TO_MIME:
            return EXTENSION_TO_MIME[ext]

    return "application/octet-stream"
