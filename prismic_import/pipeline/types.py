from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, unquote, urljoin, urlsplit, urlunsplit


class TargetKind(enum.Enum):
    ASSET = "Media"
    DOCUMENT = "Document"


@dataclass(frozen=True)
class Reference:
    target_id: str
    target_kind: TargetKind

    def as_link(self) -> dict[str, str]:
        return {"id": self.target_id, "link_type": self.target_kind.value}


@dataclass(frozen=True)
class Asset:
    identity_key: str  # absolute URL (file:// or http(s)://)
    remote_id: str | None = None
    alt_text: str | None = None


@dataclass(frozen=True)
class Document:
    identity_key: str  # source locator, never shared between documents
    remote_id: str | None = None
    kind: str | None = None  # custom type in the target repository
    language: str | None = None
    slug: str | None = None
    title: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    alternate_language_id: str | None = None


# Reserved and already-escaped characters stay as they are
_URL_SAFE = ":/?#[]@!$&'()*+,;=%~"


def absolute_url(ref: str, base: str | None = None) -> str:
    """Resolve ``ref`` against ``base`` and percent-encode it.

    Identity keys built with ``Path.as_uri()`` are percent-encoded, so raw
    hrefs found in content (``my page.html``) must be encoded the same way
    to match them.
    """
    url = urljoin(base, ref) if base else ref
    parts = urlsplit(url)
    if parts.scheme == "file":
        # Same path encoding as Path.as_uri()
        return urlunsplit(parts._replace(path=quote(unquote(parts.path), safe="/")))
    return quote(url, safe=_URL_SAFE)


def index_documents(documents: Iterable[Document]) -> dict[str, Document]:
    """Key documents by identity; documents without a key are left out."""
    return {doc.identity_key: doc for doc in documents if doc.identity_key}


@dataclass(frozen=True)
class ProcessingState:
    documents: tuple[Document, ...] = ()
    document_index: dict[str, Document] = field(default_factory=dict)
    asset_index: dict[str, Asset] = field(default_factory=dict)

    @classmethod
    def from_documents(
        cls,
        documents: Iterable[Document],
        *,
        asset_index: Mapping[str, Asset] | None = None,
    ) -> ProcessingState:
        docs = tuple(documents)
        return cls(
            documents=docs,
            document_index=index_documents(docs),
            asset_index=dict(asset_index or {}),
        )


# A transform may return a whole Document or a mapping of updated fields,
# either directly or as an awaitable.
DocumentUpdate = Document | Mapping[str, Any]
DocumentTransform = Callable[[Document], DocumentUpdate | Awaitable[DocumentUpdate]]

Stage = Callable[[ProcessingState], ProcessingState | Awaitable[ProcessingState]]
