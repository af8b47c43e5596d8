"""Rate-limited HTTP clients for the Prismic APIs.

One ``PrismicApiClient`` is built per API per run and handed to the stages
that need it. Every request goes through the client's ``RateLimiter`` and is
retried with exponential backoff on transient failures.

Creates (``POST``) are not idempotent: the server may have stored the first
attempt before answering 5xx or timing out. They are only retried when the
request provably was not applied, i.e. the connection was never made or the
API answered 429.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from prismic_import.api.rate_limit import RateLimiter
from prismic_import.config import ApiConfig
from prismic_import.exceptions import RemoteApiError
from prismic_import.models import RemoteIdResponse

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    backoff_base_seconds: float = 0.5
    retry_statuses: frozenset[int] = field(default_factory=lambda: frozenset({429, 502, 503, 504}))
    # Statuses meaning the request was rejected before being applied
    not_applied_statuses: frozenset[int] = field(default_factory=lambda: frozenset({429}))

    def backoff(self, attempt: int) -> float:
        return self.backoff_base_seconds * (2**attempt)

    def should_retry_status(self, method: str, status_code: int) -> bool:
        if method.upper() in IDEMPOTENT_METHODS:
            return status_code in self.retry_statuses
        return status_code in self.not_applied_statuses

    def should_retry_error(self, method: str, error: httpx.TransportError) -> bool:
        if isinstance(error, httpx.ConnectError):
            return True
        return method.upper() in IDEMPOTENT_METHODS


class PrismicApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        headers: dict[str, str],
        limiter: RateLimiter,
        retry: RetryPolicy | None = None,
        timeout: float = 30.0,
        params: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            params=params,
            timeout=timeout,
            transport=transport,
        )
        self.limiter = limiter
        self.retry = retry or RetryPolicy()

    async def __aenter__(self) -> PrismicApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request through the limiter, retrying transient failures."""
        retries = max(0, self.retry.max_retries)
        for attempt in range(retries + 1):
            try:
                async with self.limiter.slot():
                    resp = await self._http.request(method, url, **kwargs)
                if attempt >= retries or not self.retry.should_retry_status(method, resp.status_code):
                    break
                logger.warning(
                    "%s %s answered %d (attempt %d/%d)",
                    method,
                    url,
                    resp.status_code,
                    attempt + 1,
                    retries + 1,
                )
            except (httpx.ConnectError, httpx.ReadTimeout) as e:
                if attempt >= retries or not self.retry.should_retry_error(method, e):
                    raise
                logger.warning(
                    "%s %s failed (attempt %d/%d): %s",
                    method,
                    url,
                    attempt + 1,
                    retries + 1,
                    e,
                )
            await asyncio.sleep(self.retry.backoff(attempt))

        if resp.is_error:
            raise RemoteApiError(
                method=method, url=url, status_code=resp.status_code, body=resp.text
            )
        return resp

    async def get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        resp = await self.request("GET", url, params=params)
        return resp.json()

    async def create_or_update(self, *, collection: str, remote_id: str | None, payload: dict[str, Any]) -> str:
        """Upsert a JSON entity: PUT when it has an id, POST otherwise."""
        if remote_id:
            resp = await self.request("PUT", f"/{collection}/{remote_id}", json=payload)
        else:
            resp = await self.request("POST", f"/{collection}", json=payload)
        return RemoteIdResponse.model_validate(resp.json()).id

    async def post_form(
        self,
        url: str,
        *,
        files: dict[str, tuple[str, bytes]],
        data: dict[str, str] | None = None,
    ) -> str:
        resp = await self.request("POST", url, files=files, data=data or None)
        return RemoteIdResponse.model_validate(resp.json()).id


def _write_api_headers(cfg: ApiConfig) -> dict[str, str]:
    # Content-Type is left to httpx so multipart uploads get their boundary
    return {
        "Accept": "application/json",
        "Repository": cfg.repository,
        "Authorization": f"Bearer {cfg.write_api_token}",
    }


def _limiter_for(cfg: ApiConfig) -> RateLimiter:
    return RateLimiter(
        max_requests=1,
        per_seconds=cfg.request_interval_seconds,
        max_concurrency=cfg.max_concurrency,
    )


def _retry_for(cfg: ApiConfig) -> RetryPolicy:
    return RetryPolicy(max_retries=cfg.max_retries, backoff_base_seconds=cfg.retry_base_seconds)


def migration_api_client(
    cfg: ApiConfig,
    *,
    limiter: RateLimiter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PrismicApiClient:
    headers = _write_api_headers(cfg)
    headers["X-Api-Key"] = cfg.migration_api_key
    return PrismicApiClient(
        base_url=cfg.migration_api_url,
        headers=headers,
        limiter=limiter or _limiter_for(cfg),
        retry=_retry_for(cfg),
        timeout=cfg.timeout_seconds,
        transport=transport,
    )


def asset_api_client(
    cfg: ApiConfig,
    *,
    limiter: RateLimiter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PrismicApiClient:
    return PrismicApiClient(
        base_url=cfg.asset_api_url,
        headers=_write_api_headers(cfg),
        limiter=limiter or _limiter_for(cfg),
        retry=_retry_for(cfg),
        timeout=cfg.timeout_seconds,
        transport=transport,
    )


def document_api_client(
    cfg: ApiConfig,
    *,
    limiter: RateLimiter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PrismicApiClient:
    """Read-only client for the repository's Content API (CDN, no write throttle)."""
    params = {"access_token": cfg.document_api_token} if cfg.document_api_token else None
    return PrismicApiClient(
        base_url=cfg.resolved_document_api_url,
        headers={"Accept": "application/json"},
        limiter=limiter or RateLimiter(per_seconds=0, max_concurrency=cfg.max_concurrency),
        retry=_retry_for(cfg),
        timeout=cfg.timeout_seconds,
        params=params,
        transport=transport,
    )
