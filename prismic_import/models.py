"""Pydantic request/response schemas for the Prismic APIs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# -- Migration API ------------------------------------------------------------


class MigrationDocumentRequest(BaseModel):
    """Body of ``POST /documents`` and ``PUT /documents/{id}``.

    Only the fields the Migration API accepts are modelled; everything else a
    document carries stays local.
    """

    title: str | None = None
    type: str | None = Field(None, description="Custom type id")
    lang: str | None = Field(None, description="Locale code, e.g. 'en-us'")
    uid: str | None = None
    alternate_language_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        # `data` is always sent, even when empty
        payload = self.model_dump(exclude_none=True)
        payload["data"] = self.data
        return payload


# -- Content API (read side) ----------------------------------------------


class ApiRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    ref: str
    is_master: bool = Field(False, alias="isMasterRef")


class ApiEntry(BaseModel):
    """Answer of the API root: the refs documents can be read at."""

    model_config = ConfigDict(extra="allow")

    refs: list[ApiRef] = Field(default_factory=list)

    def master_ref(self) -> str:
        for ref in self.refs:
            if ref.is_master:
                return ref.ref
        raise ValueError("Content API returned no master ref")


class RemoteDocument(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    type: str | None = None
    lang: str | None = None
    uid: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    """One page of ``GET /documents/search``."""

    model_config = ConfigDict(extra="allow")

    page: int
    total_pages: int
    next_page: str | None = None
    results: list[RemoteDocument] = Field(default_factory=list)


# -- Shared -------------------------------------------------------------------


class RemoteIdResponse(BaseModel):
    """Both write APIs answer with at least the id they assigned."""

    model_config = ConfigDict(extra="allow")

    id: str
