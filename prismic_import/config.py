"""Environment-variable-driven configuration for the import pipeline.

All config comes from env vars; nothing is read from disk.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MIGRATION_API_URL = "https://migration.prismic.io"
DEFAULT_ASSET_API_URL = "https://asset-api.prismic.io"
DEFAULT_DOCUMENT_API_URL = "https://{repository}.cdn.prismic.io/api/v2"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class ApiConfig:
    # Credentials
    repository: str
    write_api_token: str
    migration_api_key: str

    # Endpoints
    migration_api_url: str
    asset_api_url: str

    # Throttling / retries
    request_interval_seconds: float
    max_concurrency: int | None
    max_retries: int
    retry_base_seconds: float
    timeout_seconds: float

    # Local state
    state_dir: str
    log_json: bool

    # Content API (read side); defaults to the repository CDN endpoint
    document_api_url: str | None = None
    document_api_token: str | None = None

    @property
    def resolved_document_api_url(self) -> str:
        return self.document_api_url or DEFAULT_DOCUMENT_API_URL.format(repository=self.repository)

    @classmethod
    def from_env(cls) -> ApiConfig:
        repository = os.getenv("PRISMIC_REPOSITORY")
        if not repository:
            raise ValueError("PRISMIC_REPOSITORY is required")

        return cls(
            repository=repository,
            write_api_token=os.getenv("PRISMIC_WRITE_API_TOKEN", ""),
            migration_api_key=os.getenv("PRISMIC_MIGRATION_API_KEY", ""),
            migration_api_url=os.getenv("PRISMIC_MIGRATION_API_BASE_URL") or DEFAULT_MIGRATION_API_URL,
            asset_api_url=os.getenv("PRISMIC_ASSET_API_BASE_URL") or DEFAULT_ASSET_API_URL,
            request_interval_seconds=_env_float("PRISMIC_API_REQUEST_INTERVAL_SECONDS", 2.5),
            max_concurrency=_env_int("PRISMIC_API_MAX_CONCURRENCY", None),
            max_retries=_env_int("PRISMIC_API_MAX_RETRIES", 2) or 0,
            retry_base_seconds=_env_float("PRISMIC_API_RETRY_BASE_SECONDS", 0.5),
            timeout_seconds=_env_float("PRISMIC_API_TIMEOUT_SECONDS", 30.0),
            state_dir=os.getenv("PRISMIC_IMPORT_STATE_DIR", "state"),
            log_json=_env_bool("PRISMIC_IMPORT_LOG_JSON", False),
            document_api_url=os.getenv("PRISMIC_DOCUMENT_API_BASE_URL") or None,
            document_api_token=os.getenv("PRISMIC_DOCUMENT_API_TOKEN") or None,
        )

    def validate(self) -> None:
        missing = [
            k
            for k, v in {
                "PRISMIC_REPOSITORY": self.repository,
                "PRISMIC_WRITE_API_TOKEN": self.write_api_token,
                "PRISMIC_MIGRATION_API_KEY": self.migration_api_key,
            }.items()
            if not v
        ]
        if missing:
            raise ValueError(f"Missing Prismic credentials: {', '.join(missing)}")

        if self.request_interval_seconds < 0:
            raise ValueError("PRISMIC_API_REQUEST_INTERVAL_SECONDS must be >= 0")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError("PRISMIC_API_MAX_CONCURRENCY must be >= 1")
        if self.max_retries < 0:
            raise ValueError("PRISMIC_API_MAX_RETRIES must be >= 0")
        if self.timeout_seconds <= 0:
            raise ValueError("PRISMIC_API_TIMEOUT_SECONDS must be > 0")
