from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from prismic_import.api.client import asset_api_client, migration_api_client
from prismic_import.cli import build_parser
from prismic_import.config import ApiConfig
from prismic_import.exceptions import StageFailedError
from prismic_import.logging_config import setup_logging
from prismic_import.pipeline.assets import sync_with_media_library
from prismic_import.pipeline.checkpoint import read_state
from prismic_import.pipeline.documents import (
    assign_alternate_languages,
    documents_without_alternate,
    sync_with_migration_release,
)
from prismic_import.pipeline.orchestrator import Pipeline, languages_of


def _default_output(state_file: str) -> str:
    p = Path(state_file)
    return f"{p.stem}-synced{p.suffix or '.json'}"


async def _amain(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    cfg = ApiConfig.from_env()
    setup_logging(level=args.log_level.upper(), json=cfg.log_json)
    logger = logging.getLogger("prismic_import")

    state_dir = Path(args.state_dir or cfg.state_dir)
    state = read_state(state_dir / args.state)
    output = args.output or _default_output(args.state)
    only_languages = list(args.only_language) or None

    if args.dry_run:
        new_docs = [d for d in state.documents if not d.remote_id]
        new_assets = [a for a in state.asset_index.values() if not a.remote_id]
        logger.info(
            "[DRY-RUN] %d documents (%d without id), languages=%s",
            len(state.documents),
            len(new_docs),
            languages_of(state),
        )
        for d in new_docs:
            logger.info("[DRY-RUN] create %s", d.identity_key)
        if args.upload_assets:
            for a in new_assets:
                logger.info("[DRY-RUN] upload %s", a.identity_key)
        return 0

    cfg.validate()

    async with migration_api_client(cfg) as migration, asset_api_client(cfg) as assets:
        pipeline = Pipeline(checkpoint_dir=state_dir)
        if args.main_language:
            pipeline = pipeline.then(
                assign_alternate_languages(main_language=args.main_language),
                name="assign-alternate-languages",
            )
        if args.upload_assets:
            pipeline = pipeline.then(sync_with_media_library(assets), name="upload-assets")
        pipeline = pipeline.then(
            sync_with_migration_release(
                migration,
                include_fields=not args.no_fields,
                only_languages=only_languages,
            ),
            name="sync-documents",
            checkpoint=output,
        )

        try:
            state = await pipeline.run(state)
        except StageFailedError as e:
            logger.error("Import aborted at stage '%s': %s", e.stage_name, e.__cause__)
            return 2

    if args.main_language:
        for d in documents_without_alternate(state, args.main_language):
            logger.warning(
                "No %s document shares the key of %s (%s)",
                args.main_language,
                d.identity_key,
                d.language,
            )

    logger.info("DONE documents=%d assets=%d", len(state.documents), len(state.asset_index))
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


if __name__ == "__main__":
    main()
