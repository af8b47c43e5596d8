from __future__ import annotations

import asyncio
import dataclasses
import logging
import posixpath
from collections.abc import Awaitable, Callable, Iterable
from functools import reduce
from pathlib import Path
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import httpx

from prismic_import.api.client import PrismicApiClient
from prismic_import.exceptions import AssetSourceError
from prismic_import.pipeline.fanout import gather_all, resolve
from prismic_import.pipeline.types import Asset, Document, ProcessingState, Stage, absolute_url

logger = logging.getLogger(__name__)

AssetRef = str | Asset
AssetMapper = Callable[[Document], Iterable[AssetRef] | Awaitable[Iterable[AssetRef]]]


def _to_asset(document: Document, ref: AssetRef) -> Asset:
    if isinstance(ref, Asset):
        return dataclasses.replace(ref, identity_key=absolute_url(ref.identity_key, document.identity_key))
    return Asset(identity_key=absolute_url(str(ref), document.identity_key))


def _add_asset(index: dict[str, Asset], asset: Asset) -> dict[str, Asset]:
    existing = index.get(asset.identity_key)
    if existing is not None:
        # Same URL seen twice: keep one entry, fill in alt text if missing
        if existing.alt_text or not asset.alt_text:
            return index
        asset = dataclasses.replace(existing, alt_text=asset.alt_text)
    return {**index, asset.identity_key: asset}


def find_assets(asset_mapper: AssetMapper) -> Stage:
    """Stage collecting every asset referenced by the documents.

    ``asset_mapper(document)`` returns the URLs (or ``Asset`` values) a
    document references; relative URLs are resolved against the document's
    identity key. Assets already uploaded in the previous index keep their id.
    """

    async def _stage(state: ProcessingState) -> ProcessingState:
        found = await gather_all(resolve(asset_mapper(d)) for d in state.documents)

        discovered = (
            _to_asset(doc, ref)
            for doc, refs in zip(state.documents, found, strict=True)
            for ref in refs or ()
            if ref
        )
        index = reduce(_add_asset, discovered, {})

        previous = state.asset_index
        asset_index = {
            key: (
                dataclasses.replace(asset, remote_id=previous[key].remote_id)
                if key in previous and previous[key].remote_id and not asset.remote_id
                else asset
            )
            for key, asset in index.items()
        }
        logger.info(
            "Found %d unique assets in %d documents", len(asset_index), len(state.documents)
        )
        return dataclasses.replace(state, asset_index=asset_index)

    return _stage


def asset_filename(asset: Asset) -> str:
    name = posixpath.basename(unquote(urlparse(asset.identity_key).path))
    return name or "asset"


async def read_asset_bytes(asset: Asset, fetch_client: httpx.AsyncClient) -> bytes:
    """Read an asset from the local filesystem or download it."""
    parsed = urlparse(asset.identity_key)
    try:
        if parsed.scheme == "file":
            path = Path(url2pathname(parsed.path))
            return await asyncio.to_thread(path.read_bytes)
        resp = await fetch_client.get(asset.identity_key, follow_redirects=True)
        resp.raise_for_status()
        return resp.content
    except (OSError, httpx.HTTPError) as e:
        raise AssetSourceError(f"Cannot read asset {asset.identity_key}: {e}") from e


async def sync_asset(
    asset: Asset, *, client: PrismicApiClient, fetch_client: httpx.AsyncClient
) -> Asset:
    """Upload ``asset`` unless it already has a remote id."""
    if asset.remote_id:
        return asset

    content = await read_asset_bytes(asset, fetch_client)
    form = {"alt": asset.alt_text} if asset.alt_text else None
    remote_id = await client.post_form(
        "/assets",
        files={"file": (asset_filename(asset), content)},
        data=form,
    )
    logger.debug("Uploaded %s -> %s", asset.identity_key, remote_id)
    return dataclasses.replace(asset, remote_id=remote_id)


def sync_with_media_library(
    client: PrismicApiClient,
    *,
    fetch_client: httpx.AsyncClient | None = None,
) -> Stage:
    """Stage ensuring every indexed asset exists in the media library."""

    async def _upload_all(state: ProcessingState, http: httpx.AsyncClient) -> ProcessingState:
        keys = list(state.asset_index)
        pending = sum(1 for a in state.asset_index.values() if not a.remote_id)
        logger.info("Uploading %d/%d assets", pending, len(keys))

        uploaded = await gather_all(
            sync_asset(state.asset_index[k], client=client, fetch_client=http) for k in keys
        )
        return dataclasses.replace(state, asset_index=dict(zip(keys, uploaded, strict=True)))

    async def _stage(state: ProcessingState) -> ProcessingState:
        if fetch_client is not None:
            return await _upload_all(state, fetch_client)
        async with httpx.AsyncClient(timeout=30.0) as http:
            return await _upload_all(state, http)

    return _stage
