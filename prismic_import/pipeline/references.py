"""Resolution of raw URLs in document content to Prismic asset/document ids.

Which fields carry links is schema-specific, so the engine only provides the
primitives (``Resolvers``) and delegates to a caller-supplied reference
mapper per document.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from prismic_import.pipeline.documents import map_documents
from prismic_import.pipeline.richtext import RichText, map_rich_text
from prismic_import.pipeline.types import (
    Asset,
    Document,
    DocumentUpdate,
    ProcessingState,
    Reference,
    Stage,
    TargetKind,
    absolute_url,
)

ReferenceResolver = Callable[[str | None], Reference | None]
FieldResolver = Callable[[str], Callable[[dict[str, Any]], dict[str, Any]]]


def make_reference_resolver(
    *,
    asset_index: Mapping[str, Asset],
    document_index: Mapping[str, Document],
    base_url: str | None = None,
) -> ReferenceResolver:
    """Build a resolver from raw (possibly relative) URLs to references.

    Assets are looked up before documents, so an asset wins when the same
    URL is present in both indices. A matching entry without a remote id yet
    is a miss.
    """

    def _resolve(raw_url: str | None) -> Reference | None:
        if not raw_url:
            return None

        url = absolute_url(str(raw_url), base_url)

        # First index containing the URL decides, even if it has no id yet
        if url in asset_index:
            asset_id = asset_index[url].remote_id
            return Reference(asset_id, TargetKind.ASSET) if asset_id else None
        if url in document_index:
            document_id = document_index[url].remote_id
            return Reference(document_id, TargetKind.DOCUMENT) if document_id else None
        return None

    return _resolve


def _element_resolver(resolve: ReferenceResolver) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def _element(element: dict[str, Any]) -> dict[str, Any]:
        if element.get("type") != "image":
            return element
        ref = resolve(element.get("url"))
        if ref is None:
            return element
        rest = {k: v for k, v in element.items() if k != "url"}
        return {**rest, "id": ref.target_id}

    return _element


def _span_resolver(resolve: ReferenceResolver) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def _span(span: dict[str, Any]) -> dict[str, Any]:
        if span.get("type") != "hyperlink":
            return span
        data = span.get("data") or {}
        ref = resolve(data.get("url"))
        if ref is None:
            return span
        rest = {k: v for k, v in data.items() if k != "url"}
        return {**span, "data": {**rest, **ref.as_link()}}

    return _span


def resolve_rich_text_references(resolve: ReferenceResolver) -> Callable[[Any], RichText]:
    """Rewrite image elements and hyperlink spans that resolve; keep the rest."""
    return map_rich_text(element=_element_resolver(resolve), span=_span_resolver(resolve))


def resolve_field_with(resolver: Callable[[Any], Any]) -> FieldResolver:
    """``resolve_field_with(r)(name)(data)`` replaces ``data[name]`` with ``r(data[name])``.

    The field is only replaced when the resolver returns a non-empty value.
    """

    def _for_field(field_name: str) -> Callable[[dict[str, Any]], dict[str, Any]]:
        def _apply(data: dict[str, Any]) -> dict[str, Any]:
            value = data.get(field_name)
            if value is None:
                return data
            result = resolver(value)
            if not result:
                return data
            return {**data, field_name: result}

        return _apply

    return _for_field


def _as_link(resolve: ReferenceResolver) -> Callable[[Any], dict[str, str] | None]:
    def _link(raw_url: Any) -> dict[str, str] | None:
        ref = resolve(raw_url)
        return ref.as_link() if ref is not None else None

    return _link


@dataclass(frozen=True)
class Resolvers:
    """Field-level resolution primitives handed to reference mappers."""

    link_field: FieldResolver
    rich_text_field: FieldResolver


ReferenceMapper = Callable[[Document, Resolvers], DocumentUpdate | Awaitable[DocumentUpdate]]


def resolve_references(reference_mapper: ReferenceMapper) -> Stage:
    """Stage resolving references in every document via ``reference_mapper``.

    Relative URLs are resolved against each document's own identity key.
    """

    async def _stage(state: ProcessingState) -> ProcessingState:
        def _resolve_document(document: Document) -> DocumentUpdate | Awaitable[DocumentUpdate]:
            resolver = make_reference_resolver(
                asset_index=state.asset_index,
                document_index=state.document_index,
                base_url=document.identity_key,
            )
            resolvers = Resolvers(
                link_field=resolve_field_with(_as_link(resolver)),
                rich_text_field=resolve_field_with(resolve_rich_text_references(resolver)),
            )
            return reference_mapper(document, resolvers)

        return await map_documents(_resolve_document)(state)

    return _stage
