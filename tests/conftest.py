"""Shared test fixtures for the prismic-import test suite."""

from __future__ import annotations

import itertools
import json
from typing import Any

import httpx
import pytest

from prismic_import.api.client import RetryPolicy, PrismicApiClient
from prismic_import.api.rate_limit import RateLimiter


class FakeWriteApi:
    """In-memory stand-in for the Migration and Asset APIs.

    POST assigns a fresh id; PUT echoes the id from the URL. Every request is
    recorded so tests can assert on method, path and body.
    """

    def __init__(self, *, prefix: str = "id") -> None:
        self.requests: list[httpx.Request] = []
        self.fail_paths: dict[str, int] = {}
        self._ids = itertools.count(1)
        self._prefix = prefix

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.fail_paths.get(request.url.path)
        if status is not None:
            return httpx.Response(status, json={"message": "rejected"})
        if request.method == "PUT":
            return httpx.Response(200, json={"id": request.url.path.rsplit("/", 1)[-1]})
        return httpx.Response(201, json={"id": f"{self._prefix}-{next(self._ids)}"})

    def json_bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def calls(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]


def make_client(api: FakeWriteApi, *, max_retries: int = 0) -> PrismicApiClient:
    return PrismicApiClient(
        base_url="https://api.test",
        headers={"Authorization": "Bearer test-token", "Repository": "test-repo"},
        limiter=RateLimiter.unlimited(),
        retry=RetryPolicy(max_retries=max_retries, backoff_base_seconds=0),
        transport=httpx.MockTransport(api),
    )


@pytest.fixture
def api_client_factory():
    """Build a PrismicApiClient over any MockTransport handler."""
    return make_client


@pytest.fixture
def migration_api() -> FakeWriteApi:
    return FakeWriteApi(prefix="doc")


@pytest.fixture
def asset_api() -> FakeWriteApi:
    return FakeWriteApi(prefix="asset")


@pytest.fixture
async def migration_client(migration_api: FakeWriteApi):
    async with make_client(migration_api) as client:
        yield client


@pytest.fixture
async def asset_client(asset_api: FakeWriteApi):
    async with make_client(asset_api) as client:
        yield client
