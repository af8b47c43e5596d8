"""Errors raised by the import pipeline.

Resolution misses are deliberately absent: an unresolved reference is left
in the content as a raw URL and is not an error.
"""

from __future__ import annotations


class PrismicImportError(Exception):
    """Base class for every error raised by prismic_import."""


class RemoteApiError(PrismicImportError):
    """A write API answered with a non-success status after all retries."""

    def __init__(self, *, method: str, url: str, status_code: int, body: str) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body
        super().__init__(f"{method} {url} failed with status {status_code}: {body[:500]}")


class AssetSourceError(PrismicImportError):
    """An asset's bytes could not be read from its source location."""


class StageFailedError(PrismicImportError):
    """A pipeline stage raised; the state it received was not advanced."""

    def __init__(self, stage_name: str) -> None:
        self.stage_name = stage_name
        super().__init__(f"Stage '{stage_name}' failed")
