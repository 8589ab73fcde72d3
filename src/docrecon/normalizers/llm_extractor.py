"""Extraction service backed by OpenAI chat completions."""

import json
import logging
from typing import Any, Sequence

from openai import AsyncOpenAI

from ..config import get_settings
from ..extractors.base import ContentPart, ExtractionResponse, ExtractionService
from ..utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a financial document parsing assistant. Return only valid JSON."


class OpenAIExtractionService(ExtractionService):
    """Send page images and PDFs to an OpenAI vision model."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        retry_policy: RetryPolicy | None = None,
        max_output_tokens: int | None = None,
    ):
        """
        Initialize the service.

        Args:
            api_key: OpenAI API key. If None, uses settings.
            model: Model to use. If None, uses settings.
            retry_policy: Backoff for rate-limited calls. If None, built from settings.
            max_output_tokens: Generation cap. If None, uses settings.
        """
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.llm_model
        self.max_output_tokens = max_output_tokens or settings.max_output_tokens
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy-load OpenAI client."""
        if self._client is None:
            # Retries are owned by retry_policy
            self._client = AsyncOpenAI(api_key=self.api_key, max_retries=0)
        return self._client

    async def generate(
        self,
        parts: Sequence[ContentPart],
        instruction: str,
        response_schema: dict[str, Any] | None = None,
    ) -> ExtractionResponse:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": self._build_content(parts, instruction, response_schema)},
        ]

        async def _complete():
            return await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0,
                max_tokens=self.max_output_tokens,
                response_format={"type": "json_object"},
            )

        response = await self.retry_policy.call(_complete)

        choice = response.choices[0]
        warnings = []
        if choice.finish_reason == "length":
            warnings.append("Response truncated at the output token limit")
            logger.warning(f"Extraction output truncated ({self.max_output_tokens} tokens)")

        return ExtractionResponse(
            text=choice.message.content,
            model=response.model,
            warnings=warnings,
        )

    def _build_content(
        self,
        parts: Sequence[ContentPart],
        instruction: str,
        response_schema: dict[str, Any] | None,
    ) -> list[dict[str, Any]]:
        """Build the multimodal user message: pages first, instruction last."""
        content: list[dict[str, Any]] = []

        for index, part in enumerate(parts, start=1):
            if part.is_pdf:
                content.append(
                    {
                        "type": "file",
                        "file": {
                            "filename": part.filename or f"page-{index}.pdf",
                            "file_data": part.to_data_url(),
                        },
                    }
                )
            elif part.is_image:
                content.append({"type": "image_url", "image_url": {"url": part.to_data_url()}})
            else:
                logger.warning(f"Skipping unsupported part {part.filename or index} ({part.mime_type})")

        text = instruction
        if response_schema is not None:
            text += "\n\nJSON shape:\n" + json.dumps(response_schema, indent=2)
        content.append({"type": "text", "text": text})
        return content
