"""Configuration management using pydantic-settings."""

from functools import lru_cache
import json
from typing import Annotated, Iterable

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI (document extraction service)
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key",
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use for extraction",
    )
    max_output_tokens: int = Field(
        default=16000,
        ge=256,
        description="Upper bound on tokens generated per extraction call",
    )

    # Exchange rates
    exchange_rate_api_key: str = Field(
        default="",
        description="ExchangeRate-API key",
    )
    exchange_rate_base_url: str = Field(
        default="https://v6.exchangerate-api.com/v6",
        description="Base URL of the pair conversion endpoint",
    )
    fx_timeout_seconds: float = Field(default=10.0, gt=0)
    reporting_currency: str = Field(
        default="AED",
        min_length=3,
        max_length=3,
        description="Currency every normalized amount is converted into",
    )

    # Retry policy for rate-limited calls
    retry_max_attempts: int = Field(default=7, ge=1, le=20)
    retry_base_delay_ms: int = Field(default=15000, ge=0)
    retry_max_jitter_ms: int = Field(default=2000, ge=0)

    # Batch scheduling
    statement_page_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Pause between bank statement pages",
    )
    batch_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Stagger applied to concurrent invoice/trial balance batches",
    )
    max_concurrent_batches: int = Field(default=3, ge=1, le=16)
    invoice_batch_size: int = Field(default=2, ge=1)

    # Heuristic thresholds (empirical, pending calibration)
    swap_bias_per_row: float = Field(
        default=0.5,
        ge=0,
        description="Per-row error under which the unswapped ledger is kept",
    )
    name_match_threshold: float = Field(
        default=0.6,
        gt=0,
        le=1,
        description="Token overlap ratio that counts as a company name match",
    )
    continuation_date_tokens: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["-", "N/A", "..", "."],
        description="Date cell values that mark a wrapped description row",
    )

    # Server Settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)

    @field_validator("continuation_date_tokens", mode="before")
    @classmethod
    def parse_date_tokens(cls, value: str | Iterable[str]) -> list[str]:
        """Allow JSON or comma-separated env strings for placeholder dates."""
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return []
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                return [item.strip() for item in text.split(",") if item.strip()]
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
            return [str(parsed).strip()]
        return list(value)

    @field_validator("reporting_currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
