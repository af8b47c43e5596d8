"""Documents already stored in the repository, read from the Content API.

Update runs start from what the repository holds instead of local files.
Each remote document becomes a ``Document`` whose identity key and remote id
are both the Prismic id, so later sync stages update it in place (``PUT``).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from prismic_import.api.client import PrismicApiClient
from prismic_import.models import ApiEntry, RemoteDocument, SearchResponse
from prismic_import.pipeline.types import Document, ProcessingState

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True)
class DocumentPage:
    documents: tuple[Document, ...]
    page: int
    total_pages: int


def _to_document(remote: RemoteDocument) -> Document:
    return Document(
        identity_key=remote.id,
        remote_id=remote.id,
        kind=remote.type,
        language=remote.lang,
        slug=remote.uid,
        data=dict(remote.data),
    )


async def master_ref(client: PrismicApiClient) -> str:
    entry = ApiEntry.model_validate(await client.get_json(""))
    return entry.master_ref()


async def iter_remote_documents(
    client: PrismicApiClient,
    *,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    ref: str | None = None,
    **params: Any,
) -> AsyncIterator[DocumentPage]:
    """Yield the repository's documents one page at a time.

    Extra keyword arguments are passed through as query parameters
    (``q`` predicates, ``lang``, ``orderings`` ...). Iteration starts at
    ``page`` and stops after the last page the API reports.
    """
    ref = ref or await master_ref(client)
    while True:
        body = SearchResponse.model_validate(
            await client.get_json(
                "/documents/search",
                params={**params, "ref": ref, "page": page, "pageSize": page_size},
            )
        )
        logger.debug("Fetched page %d/%d (%d documents)", body.page, body.total_pages, len(body.results))
        yield DocumentPage(
            documents=tuple(_to_document(r) for r in body.results),
            page=body.page,
            total_pages=body.total_pages,
        )
        if not body.next_page:
            return
        page += 1


async def load_remote_documents(client: PrismicApiClient, **params: Any) -> ProcessingState:
    """Read every matching document into a fresh ``ProcessingState``."""
    documents: list[Document] = []
    async for batch in iter_remote_documents(client, **params):
        documents.extend(batch.documents)
    logger.info("Loaded %d documents from the repository", len(documents))
    return ProcessingState.from_documents(documents)
