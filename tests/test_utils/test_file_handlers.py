"""Tests for page type detection."""

import pytest

pytest.importorskip("magic")

from docrecon.extractors.base import ContentPart  # noqa: E402
from docrecon.utils.file_handlers import detect_mime_type  # noqa: E402

PNG_HEADER = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00"


class TestDetectMimeType:
    """Test cases for detect_mime_type."""

    def test_pdf_content(self):
        """Test that PDF bytes are recognised regardless of name."""
        content = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n"
        assert detect_mime_type(content, "upload") == "application/pdf"

    def test_png_content(self):
        """Test that PNG bytes are recognised."""
        assert detect_mime_type(PNG_HEADER) == "image/png"

    def test_extension_fallback(self):
        """Test that the extension is used without content."""
        assert detect_mime_type(None, "IMG_0001.HEIC") == "image/heic"

    def test_unknown(self):
        """Test the generic fallback."""
        assert detect_mime_type(None, "notes.txt") == "application/octet-stream"

    def test_content_part_detects_page_type(self):
        """Test that pages built from bytes carry the detected type."""
        part = ContentPart.from_bytes(PNG_HEADER, filename="scan")

        assert part.mime_type == "image/png"
        assert part.is_image and not part.is_pdf
