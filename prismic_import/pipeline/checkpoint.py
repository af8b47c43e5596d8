"""JSON snapshots of a ProcessingState, used to resume a run.

Documents are stored once; ``document_index`` is written as
``[key, position in documents]`` pairs and ``asset_index`` as literal
``[key, asset]`` entries. On load the document index is always rebuilt from
the documents; stored pairs that disagree with it are reported and ignored.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any

from prismic_import.pipeline.types import Asset, Document, ProcessingState, Stage, index_documents

logger = logging.getLogger(__name__)


def state_to_json(state: ProcessingState) -> dict[str, Any]:
    positions = {id(doc): i for i, doc in enumerate(state.documents)}
    return {
        "documents": [dataclasses.asdict(d) for d in state.documents],
        "document_index": [
            [key, positions[id(doc)]]
            for key, doc in state.document_index.items()
            if id(doc) in positions
        ],
        "asset_index": [[key, dataclasses.asdict(a)] for key, a in state.asset_index.items()],
    }


def state_from_json(raw: dict[str, Any]) -> ProcessingState:
    documents = tuple(Document(**d) for d in raw.get("documents") or [])
    document_index = index_documents(documents)
    stored = raw.get("document_index") or []
    stale = [
        key
        for key, i in stored
        if not (0 <= i < len(documents)) or document_index.get(key) is not documents[i]
    ]
    if stale:
        logger.warning("Ignoring %d stale document_index entries: %s", len(stale), ", ".join(stale[:5]))
    asset_index = {key: Asset(**a) for key, a in raw.get("asset_index") or []}
    return ProcessingState(
        documents=documents,
        document_index=document_index,
        asset_index=asset_index,
    )


def write_state(path: str | Path, state: ProcessingState) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(state_to_json(state), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Saved state (%d documents, %d assets) to %s", len(state.documents), len(state.asset_index), out)
    return out


def read_state(path: str | Path) -> ProcessingState:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    state = state_from_json(raw)
    logger.info("Loaded state (%d documents, %d assets) from %s", len(state.documents), len(state.asset_index), path)
    return state


def dump_state(path: str | Path) -> Stage:
    """Stage that saves the state to ``path`` and passes it on unchanged."""

    def _stage(state: ProcessingState) -> ProcessingState:
        write_state(path, state)
        return state

    return _stage
