"""Extraction service interface."""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from ..utils.json_repair import safe_parse


@dataclass
class ContentPart:
    """One page or file sent to the extraction service."""

    data: bytes
    mime_type: str
    filename: str | None = None

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        filename: str | None = None,
        mime_type: str | None = None,
    ) -> "ContentPart":
        """Build a part, detecting the MIME type when not given."""
        if mime_type is None:
            from ..utils.file_handlers import detect_mime_type

            mime_type = detect_mime_type(data, filename)
        return cls(data=data, mime_type=mime_type, filename=filename)

    @classmethod
    def from_path(cls, path: str | Path) -> "ContentPart":
        path = Path(path)
        return cls.from_bytes(path.read_bytes(), filename=path.name)

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass
class ExtractionResponse:
    """Raw answer from the extraction service."""

    # Expected to be JSON, never trusted to be
    text: str | None = None

    model: str | None = None

    # Any warnings or issues during extraction
    warnings: list[str] = field(default_factory=list)

    def parsed(self) -> Any:
        """Parse the text through the repair parser (None when unusable)."""
        return safe_parse(self.text)


class ExtractionService(ABC):
    """Abstract multimodal document-understanding service."""

    @abstractmethod
    async def generate(
        self,
        parts: Sequence[ContentPart],
        instruction: str,
        response_schema: dict[str, Any] | None = None,
    ) -> ExtractionResponse:
        """
        Run one extraction call.

        Args:
            parts: Page images or PDFs; may be empty for text-only requests
            instruction: Task prompt
            response_schema: Optional JSON shape hint

        Returns:
            ExtractionResponse with the raw text
        """
        pass
