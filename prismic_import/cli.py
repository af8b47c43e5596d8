from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="prismic-import",
        description="Resume an import from a saved state and sync it to the Prismic migration release",
    )

    p.add_argument("state", help="State file to resume from (relative to the state dir unless absolute)")
    p.add_argument(
        "--output",
        default=None,
        help="State file to write after syncing (default: <state>-synced.json)",
    )
    p.add_argument(
        "--state-dir",
        default=None,
        help="Directory for state files (default from env PRISMIC_IMPORT_STATE_DIR)",
    )
    p.add_argument(
        "--main-language",
        default=None,
        help="Link other languages to this language's documents before syncing",
    )
    p.add_argument(
        "--only-language",
        action="append",
        default=[],
        help="Only sync documents in this language (repeatable)",
    )
    p.add_argument("--no-fields", action="store_true", help="Send documents without their field content")
    p.add_argument("--upload-assets", action="store_true", help="Upload assets that have no id yet")
    p.add_argument("--dry-run", action="store_true", help="List pending work and exit (no API calls)")
    p.add_argument("--log-level", default="INFO", help="Python logging level (INFO, DEBUG, ...)")
    return p
