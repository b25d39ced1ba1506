"""Application configuration."""

from __future__ import annotations

from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .transport import DEFAULT_NAMESPACE, DEFAULT_SOAP_ACTION


class Settings(BaseSettings):
    """Settings loaded from LICENSE_VERIFIER_* environment variables and .env."""

    model_config = SettingsConfigDict(
        env_prefix="LICENSE_VERIFIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Where relative input/output paths are resolved
    working_directory: Path = Path(".")

    # Registry endpoint
    endpoint_url: str = ""
    client_cert_path: Optional[Path] = None
    client_key_path: Optional[Path] = None
    verify_server_certificate: bool = False  # The registry uses a private CA
    request_timeout_seconds: float = Field(default=60.0, gt=0)
    soap_namespace: str = DEFAULT_NAMESPACE
    soap_action: str = DEFAULT_SOAP_ACTION

    # Courtesy delay between requests, on top of any backoff
    delay_lower_bound_ms: int = Field(default=500, ge=0)
    delay_upper_bound_ms: int = Field(default=1000, ge=0)

    # Backoff on HTTP 429
    backoff_initial_delay_seconds: float = Field(default=30.0, gt=0)
    backoff_max_delay_seconds: float = Field(default=3600.0, gt=0)

    # Output
    output_delimiter: str = Field(default=",", min_length=1, max_length=1)
    output_encoding: str = "utf-8"
    expiry_sentinel: Optional[date] = None  # e.g. 9999-12-31; unset keeps the cell empty

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_delay_window(self) -> Settings:
        if self.delay_lower_bound_ms > self.delay_upper_bound_ms:
            raise ValueError(
                "delay_lower_bound_ms must not exceed delay_upper_bound_ms "
                f"({self.delay_lower_bound_ms} > {self.delay_upper_bound_ms})"
            )
        return self

    def resolve(self, path: str | Path) -> Path:
        """Resolve a user-supplied path against the working directory."""
        candidate = Path(path).expanduser()
        return candidate if candidate.is_absolute() else self.working_directory / candidate


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
