"""Configuration management for Mail Emulator.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from datetime import datetime
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mail_emulator.personas.catalog import NAMED_PERSONAS


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the MAIL_EMULATOR_ prefix (e.g., MAIL_EMULATOR_TEST_EMAIL).
    """

    model_config = SettingsConfigDict(
        env_prefix="MAIL_EMULATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Corpus selection
    corpus_root: Path = Field(
        default=Path("maildir"),
        description="Root directory holding one sub-directory per mailbox owner",
    )
    folder_owner: str | None = Field(
        default=None,
        description="Mailbox owner directory to transform (e.g. allen-p)",
    )
    message_limit: int | None = Field(
        default=None,
        ge=1,
        description="Keep only the most recent N messages (default: all)",
    )
    owner_email: str | None = Field(
        default=None,
        description="Real address of the mailbox owner. Inferred from sent folders when unset.",
    )

    # Synthetic identities
    test_email: str = Field(
        default="test.account@example.com",
        description="Email address the mailbox owner is rewritten to",
    )
    test_account_name: str = Field(
        default="Test Account",
        description="Display name the mailbox owner is rewritten to",
    )
    top_k: int = Field(
        default=5,
        ge=0,
        description="Number of most frequent correspondents that receive named personas",
    )
    generic_persona_count: int = Field(
        default=8,
        ge=1,
        description="Number of generic personas the long tail collapses into",
    )
    synthetic_domain: str = Field(
        default="example.com",
        description="Domain used for synthetic persona addresses",
    )

    # Transform output
    output_dir: Path = Field(
        default=Path("output"),
        description="Directory the transform writes its artifacts into",
    )
    window_end: datetime | None = Field(
        default=None,
        description="Timestamp the newest message is shifted to (default: now)",
    )
    snippet_length: int = Field(
        default=200,
        ge=1,
        description="Maximum snippet length in characters",
    )
    parse_workers: int = Field(
        default=4,
        ge=1,
        description="Worker threads used to parse raw records",
    )
    parse_chunk_size: int = Field(
        default=200,
        ge=1,
        description="Number of raw records handed to a parse worker at once",
    )

    # Replay service
    data_dir: Path = Field(
        default=Path("output"),
        description="Directory the replay service loads transform artifacts from",
    )
    api_version: str = Field(default="v1", description="API version segment served by replay")
    default_max_results: int = Field(
        default=100,
        ge=1,
        description="Page size used when maxResults is not given",
    )
    max_results_cap: int = Field(
        default=500,
        ge=1,
        description="Upper bound applied to maxResults",
    )
    replay_host: str = Field(default="127.0.0.1", description="Replay service bind host")
    replay_port: int = Field(default=8080, description="Replay service bind port")

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    @field_validator("top_k")
    @classmethod
    def _top_k_within_catalog(cls, v: int) -> int:
        if v > len(NAMED_PERSONAS):
            raise ValueError(f"top_k must be <= {len(NAMED_PERSONAS)} (size of the persona catalog)")
        return v

    @field_validator("test_email", "owner_email")
    @classmethod
    def _normalize_email(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip().lower()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
