"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables
  - Fall back to a .env file
  - Validate types at startup

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__", so TRUST__VERIFY_LEAF_ISSUER
maps to trust.verify_leaf_issuer.

Example:
  TRUST__ROOT_CERTIFICATE_PATHS='["/etc/storekit/AppleRootCA-G3.cer"]'
  TRUST__VERIFY_LEAF_ISSUER=true
  LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class TrustSettings(BaseModel):
    """
    Trust anchors and chain policy.

    With no root_certificate_paths the built-in Apple Root CA - G3 is pinned.
    Files may be PEM (one or more certificates) or DER.
    """

    root_certificate_paths: list[Path] = Field(
        default_factory=list,
        description="Root certificates to pin instead of the built-in Apple root",
    )
    verify_leaf_issuer: bool = Field(
        default=True,
        description="Also require the leaf certificate to be issued by the intermediate",
    )


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    trust: TrustSettings = Field(default_factory=lambda: TrustSettings())
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()
