"""Sequential composition of pipeline stages.

A ``Pipeline`` threads one ``ProcessingState`` through its stages in order.
Stage N+1 only starts once stage N has fully produced its state. Work inside
a stage may be concurrent; stages themselves never overlap.

A failing stage surfaces as ``StageFailedError``. Remote writes that stage
already committed (uploads, upserts) are not rolled back, so the remote
repository may be ahead of the last state the caller holds. Re-running from
a checkpoint updates documents that already had an id; documents created by
the failed stage are created again.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Collection, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from prismic_import.exceptions import StageFailedError
from prismic_import.logging_config import current_stage
from prismic_import.pipeline.assets import AssetMapper
from prismic_import.pipeline.checkpoint import write_state
from prismic_import.pipeline.fanout import resolve
from prismic_import.pipeline.types import Document, ProcessingState, Stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamedStage:
    name: str
    stage: Stage
    checkpoint: str | None = None


class Pipeline:
    def __init__(
        self,
        stages: Iterable[NamedStage] = (),
        *,
        checkpoint_dir: str | Path | None = None,
    ) -> None:
        self._stages: tuple[NamedStage, ...] = tuple(stages)
        self._checkpoint_dir = Path(checkpoint_dir) if checkpoint_dir is not None else None

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self._stages]

    def then(self, stage: Stage, *, name: str | None = None, checkpoint: str | None = None) -> Pipeline:
        """Return a new pipeline with ``stage`` appended."""
        stage_name = name or f"stage-{len(self._stages) + 1}"
        if checkpoint is not None and self._checkpoint_dir is None:
            raise ValueError("checkpoint requires a pipeline checkpoint_dir")
        return Pipeline(
            (*self._stages, NamedStage(stage_name, stage, checkpoint)),
            checkpoint_dir=self._checkpoint_dir,
        )

    async def run(self, state: ProcessingState) -> ProcessingState:
        for i, named in enumerate(self._stages, 1):
            logger.info("Stage %d/%d: %s", i, len(self._stages), named.name)
            started = time.monotonic()
            token = current_stage.set(named.name)
            try:
                state = await resolve(named.stage(state))
            except Exception as e:
                logger.error("Stage '%s' failed: %s: %s", named.name, type(e).__name__, e)
                raise StageFailedError(named.name) from e
            finally:
                current_stage.reset(token)
            logger.info("Stage '%s' done in %.1fs", named.name, time.monotonic() - started)

            if named.checkpoint and self._checkpoint_dir is not None:
                write_state(self._checkpoint_dir / named.checkpoint, state)
        return state


def by_kind(
    handlers: Mapping[str, Callable[..., Any]],
    *,
    default: Callable[..., Any],
) -> Callable[..., Any]:
    """Dispatch a schema-specific collaborator on ``document.kind``.

    The first positional argument must be the ``Document``; any further
    arguments (e.g. resolvers) are passed through.
    """

    def _dispatch(document: Document, *args: Any) -> Any:
        handler = handlers.get(document.kind or "", default)
        return handler(document, *args)

    return _dispatch


def _no_assets(document: Document) -> list[str]:
    return []


def _unchanged(document: Document, *args: Any) -> Document:
    return document


def asset_mapper_by_kind(handlers: Mapping[str, AssetMapper]) -> AssetMapper:
    return by_kind(handlers, default=_no_assets)


def reference_mapper_by_kind(handlers: Mapping[str, Callable[..., Any]]) -> Callable[..., Any]:
    return by_kind(handlers, default=_unchanged)


def languages_of(state: ProcessingState) -> Collection[str]:
    return sorted({d.language for d in state.documents if d.language})
