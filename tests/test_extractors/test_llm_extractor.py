"""Tests for the extraction service boundary."""

import asyncio
import base64
from types import SimpleNamespace

import pytest

from docrecon.extractors.base import ContentPart, ExtractionResponse
from docrecon.normalizers.llm_extractor import OpenAIExtractionService
from docrecon.utils.retry import RetryPolicy


class RateLimitError(Exception):
    status_code = 429


class FakeCompletions:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def completion(content, finish_reason="stop"):
    return SimpleNamespace(
        model="gpt-test",
        choices=[SimpleNamespace(finish_reason=finish_reason, message=SimpleNamespace(content=content))],
    )


async def no_sleep(seconds):
    return None


class TestContentPart:
    """Test cases for ContentPart."""

    def test_data_url(self):
        """Test base64 data URL encoding."""
        part = ContentPart(data=b"%PDF-1.7", mime_type="application/pdf", filename="a.pdf")
        assert part.is_pdf and not part.is_image
        assert part.to_data_url() == "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.7").decode()

    def test_explicit_mime_type_skips_detection(self):
        """Test that a given MIME type is used as is."""
        part = ContentPart.from_bytes(b"...", filename="scan.bin", mime_type="image/jpeg")
        assert part.is_image


class TestExtractionResponse:
    """Test cases for ExtractionResponse."""

    def test_parsed_repairs_output(self):
        """Test that truncated output is repaired on access."""
        assert ExtractionResponse(text='{"entries": [{"account": "Cash"').parsed() == {
            "entries": [{"account": "Cash"}]
        }

    def test_parsed_empty(self):
        """Test that no text parses to None."""
        assert ExtractionResponse().parsed() is None


class TestOpenAIExtractionService:
    """Test cases for OpenAIExtractionService."""

    def setup_method(self):
        """Setup test fixtures."""
        self.completions = FakeCompletions([completion('{"ok": true}')])
        self.service = OpenAIExtractionService(
            api_key="test",
            model="gpt-test",
            retry_policy=RetryPolicy(max_attempts=3, base_delay_ms=0, max_jitter_ms=0, sleep=no_sleep),
            max_output_tokens=1000,
        )
        self.service._client = SimpleNamespace(chat=SimpleNamespace(completions=self.completions))
        self.pages = [
            ContentPart(data=b"png", mime_type="image/png", filename="p1.png"),
            ContentPart(data=b"pdf", mime_type="application/pdf", filename="p2.pdf"),
            ContentPart(data=b"??", mime_type="application/octet-stream", filename="p3.bin"),
        ]

    def test_request_layout(self):
        """Test that pages come first and the instruction with the JSON shape last."""
        response = asyncio.run(self.service.generate(self.pages, "Extract.", {"type": "object"}))

        assert response.text == '{"ok": true}'
        assert response.model == "gpt-test"

        request = self.completions.requests[0]
        assert request["model"] == "gpt-test"
        assert request["temperature"] == 0
        assert request["max_tokens"] == 1000
        assert request["response_format"] == {"type": "json_object"}

        content = request["messages"][1]["content"]
        assert [item["type"] for item in content] == ["image_url", "file", "text"]
        assert content[0]["image_url"]["url"].startswith("data:image/png;base64,")
        assert content[1]["file"]["filename"] == "p2.pdf"
        assert content[2]["text"].startswith("Extract.")
        assert '"type": "object"' in content[2]["text"]

    def test_truncation_adds_warning(self):
        """Test that a length stop is surfaced as a warning."""
        self.completions.responses = [completion('{"entries": [', finish_reason="length")]
        response = asyncio.run(self.service.generate([], "Extract."))
        assert response.warnings == ["Response truncated at the output token limit"]

    def test_rate_limits_are_retried(self):
        """Test that 429 responses go through the retry policy."""
        self.completions.responses = [RateLimitError("429"), completion("{}")]
        response = asyncio.run(self.service.generate([], "Extract."))

        assert response.text == "{}"
        assert len(self.completions.requests) == 2

    def test_other_errors_propagate(self):
        """Test that non rate-limit errors are raised to the caller."""
        self.completions.responses = [ValueError("invalid image")]
        with pytest.raises(ValueError):
            asyncio.run(self.service.generate([], "Extract."))
        assert len(self.completions.requests) == 1
