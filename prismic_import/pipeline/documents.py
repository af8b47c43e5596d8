from __future__ import annotations

import dataclasses
import logging
from collections.abc import Awaitable, Callable, Collection, Mapping
from pathlib import Path
from typing import Any

from prismic_import.api.client import PrismicApiClient
from prismic_import.models import MigrationDocumentRequest
from prismic_import.pipeline.fanout import gather_all, resolve
from prismic_import.pipeline.types import (
    Document,
    DocumentTransform,
    DocumentUpdate,
    ProcessingState,
    Stage,
    index_documents,
)

logger = logging.getLogger(__name__)


def find_documents(pattern: str, *, root: str | Path = ".") -> ProcessingState:
    """Discover source files matching ``pattern`` under ``root``.

    Each document starts with nothing but its identity key, a ``file://`` URL.
    """
    paths = sorted(p.resolve() for p in Path(root).glob(pattern) if p.is_file())
    logger.info("Discovered %d documents matching %s", len(paths), pattern)
    return ProcessingState.from_documents(Document(identity_key=p.as_uri()) for p in paths)


def merge_update(document: Document, update: DocumentUpdate | None) -> Document:
    if update is None:
        return document
    if isinstance(update, Document):
        return update
    return dataclasses.replace(document, **dict(update))


def map_documents(transform: DocumentTransform) -> Stage:
    """Stage applying ``transform`` to every document and re-indexing them."""

    async def _apply(document: Document) -> Document:
        return merge_update(document, await resolve(transform(document)))

    async def _stage(state: ProcessingState) -> ProcessingState:
        documents = tuple(await gather_all(_apply(d) for d in state.documents))
        return dataclasses.replace(
            state,
            documents=documents,
            document_index=index_documents(documents),
        )

    return _stage


def _migration_request(document: Document, *, include_fields: bool) -> MigrationDocumentRequest:
    return MigrationDocumentRequest(
        title=document.title,
        type=document.kind,
        lang=document.language,
        uid=document.slug,
        alternate_language_id=document.alternate_language_id,
        data=document.data if include_fields else {},
    )


def sync_with_migration_release(
    client: PrismicApiClient,
    *,
    include_fields: bool = True,
    only_languages: Collection[str] | None = None,
) -> Stage:
    """Upsert documents into the migration release.

    With ``include_fields=False`` documents are sent with an empty ``data``
    payload, which is useful to obtain ids before links are resolved.
    ``only_languages`` limits the upsert to those languages; other documents
    pass through untouched.
    """

    async def _sync(document: Document) -> Document:
        req = _migration_request(document, include_fields=include_fields)
        remote_id = await client.create_or_update(
            collection="documents",
            remote_id=document.remote_id,
            payload=req.to_payload(),
        )
        logger.debug(
            "%s %s -> %s",
            "Updated" if document.remote_id else "Created",
            document.identity_key,
            remote_id,
        )
        return dataclasses.replace(document, remote_id=remote_id)

    async def _stage(state: ProcessingState) -> ProcessingState:
        allowed = (
            set(only_languages)
            if only_languages is not None
            else {d.language for d in state.documents}
        )
        pending = sum(1 for d in state.documents if d.language in allowed)
        logger.info(
            "Syncing %d/%d documents (languages=%s, fields=%s)",
            pending,
            len(state.documents),
            sorted(str(lang) for lang in allowed),
            include_fields,
        )

        def _maybe_sync(document: Document) -> Document | Awaitable[Document]:
            return _sync(document) if document.language in allowed else document

        return await map_documents(_maybe_sync)(state)

    return _stage


def _slug_key(document: Document) -> Any:
    return document.slug


def assign_alternate_languages(
    *,
    main_language: str,
    common_key: Callable[[Document], Any] = _slug_key,
) -> Stage:
    """Link documents in other languages to their main-language sibling."""

    async def _stage(state: ProcessingState) -> ProcessingState:
        main_ids: Mapping[Any, str | None] = {
            common_key(d): d.remote_id for d in state.documents if d.language == main_language
        }

        def _link(document: Document) -> Document:
            if document.language == main_language:
                return document
            return dataclasses.replace(
                document, alternate_language_id=main_ids.get(common_key(document))
            )

        return await map_documents(_link)(state)

    return _stage


def documents_without_alternate(state: ProcessingState, main_language: str) -> list[Document]:
    """Non-main-language documents that found no main-language sibling."""
    return [
        d
        for d in state.documents
        if d.language != main_language and not d.alternate_language_id
    ]
