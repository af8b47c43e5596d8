"""Unit tests for env-driven configuration and the resume CLI."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from prismic_import.cli import build_parser
from prismic_import.config import DEFAULT_ASSET_API_URL, DEFAULT_MIGRATION_API_URL, ApiConfig
from prismic_import.logging_config import ImportJsonFormatter, StageFilter, current_stage, setup_logging
from prismic_import.main import _amain, _default_output

_ENV = {
    "PRISMIC_REPOSITORY": "my-repo",
    "PRISMIC_WRITE_API_TOKEN": "tok",
    "PRISMIC_MIGRATION_API_KEY": "key",
}


class TestApiConfig:
    def test_missing_repository_raises(self):
        with (
            pytest.raises(ValueError, match="PRISMIC_REPOSITORY"),
            patch.dict("os.environ", {}, clear=True),
        ):
            ApiConfig.from_env()

    def test_defaults(self):
        with patch.dict("os.environ", _ENV, clear=True):
            cfg = ApiConfig.from_env()
        assert cfg.migration_api_url == DEFAULT_MIGRATION_API_URL
        assert cfg.asset_api_url == DEFAULT_ASSET_API_URL
        assert cfg.request_interval_seconds == 2.5
        assert cfg.max_concurrency is None
        assert cfg.max_retries == 2
        assert cfg.state_dir == "state"
        assert cfg.log_json is False
        assert cfg.resolved_document_api_url == "https://my-repo.cdn.prismic.io/api/v2"
        assert cfg.document_api_token is None
        cfg.validate()

    def test_overrides(self):
        env = {
            **_ENV,
            "PRISMIC_MIGRATION_API_BASE_URL": "http://localhost:9000",
            "PRISMIC_API_REQUEST_INTERVAL_SECONDS": "0",
            "PRISMIC_API_MAX_CONCURRENCY": "3",
            "PRISMIC_API_MAX_RETRIES": "0",
            "PRISMIC_IMPORT_LOG_JSON": "yes",
            "PRISMIC_DOCUMENT_API_BASE_URL": "http://localhost:9001/api/v2",
            "PRISMIC_DOCUMENT_API_TOKEN": "read-token",
        }
        with patch.dict("os.environ", env, clear=True):
            cfg = ApiConfig.from_env()
        assert cfg.migration_api_url == "http://localhost:9000"
        assert cfg.request_interval_seconds == 0
        assert cfg.max_concurrency == 3
        assert cfg.max_retries == 0
        assert cfg.log_json is True
        assert cfg.resolved_document_api_url == "http://localhost:9001/api/v2"
        assert cfg.document_api_token == "read-token"

    def test_missing_credentials_fail_validation(self):
        with patch.dict("os.environ", {"PRISMIC_REPOSITORY": "my-repo"}, clear=True):
            cfg = ApiConfig.from_env()
        with pytest.raises(ValueError, match="PRISMIC_WRITE_API_TOKEN, PRISMIC_MIGRATION_API_KEY"):
            cfg.validate()

    def test_invalid_concurrency(self):
        with patch.dict("os.environ", {**_ENV, "PRISMIC_API_MAX_CONCURRENCY": "0"}, clear=True):
            cfg = ApiConfig.from_env()
        with pytest.raises(ValueError, match="MAX_CONCURRENCY"):
            cfg.validate()


class TestLogging:
    def test_json_formatter_reports_severity(self):
        record = logging.LogRecord("prismic_import.x", logging.WARNING, __file__, 1, "retrying %s", ("x",), None)
        out = json.loads(ImportJsonFormatter(fmt="%(message)s %(name)s").format(record))
        assert out["message"] == "retrying x"
        assert out["severity"] == "WARNING"
        assert "levelname" not in out

    def test_stage_name_is_attached(self):
        record = logging.LogRecord("prismic_import.x", logging.INFO, __file__, 1, "uploaded", (), None)
        token = current_stage.set("upload-assets")
        try:
            StageFilter().filter(record)
        finally:
            current_stage.reset(token)
        out = json.loads(ImportJsonFormatter(fmt="%(message)s %(stage)s").format(record))
        assert out["stage"] == "upload-assets"

    def test_stage_omitted_outside_a_run(self):
        record = logging.LogRecord("prismic_import.x", logging.INFO, __file__, 1, "loaded", (), None)
        StageFilter().filter(record)
        assert record.stage == "-"
        out = json.loads(ImportJsonFormatter(fmt="%(message)s %(stage)s").format(record))
        assert "stage" not in out

    def test_setup_logging_sets_level(self):
        root = logging.getLogger()
        saved = (root.level, root.handlers[:])
        try:
            setup_logging(level="debug")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
        finally:
            root.handlers[:] = saved[1]
            root.setLevel(saved[0])


class TestCli:
    def test_parser_defaults(self):
        args = build_parser().parse_args(["with-assets.json"])
        assert args.state == "with-assets.json"
        assert args.only_language == []
        assert args.no_fields is False
        assert args.upload_assets is False

    def test_repeatable_language(self):
        args = build_parser().parse_args(["s.json", "--only-language", "en-us", "--only-language", "fr-fr"])
        assert args.only_language == ["en-us", "fr-fr"]

    def test_default_output_name(self):
        assert _default_output("with-assets.json") == "with-assets-synced.json"

    async def test_dry_run_makes_no_requests(self, tmp_path):
        (tmp_path / "s.json").write_text(
            json.dumps({"documents": [{"identity_key": "file:///a.html", "language": "en-us"}]})
        )
        with (
            patch.dict("os.environ", {"PRISMIC_REPOSITORY": "my-repo"}, clear=True),
            patch("prismic_import.main.setup_logging"),
            patch("prismic_import.main.migration_api_client") as mock_client,
        ):
            code = await _amain(["s.json", "--state-dir", str(tmp_path), "--dry-run"])
        assert code == 0
        mock_client.assert_not_called()

    async def test_resume_syncs_and_writes_state(self, tmp_path, migration_api, asset_api, api_client_factory):
        (tmp_path / "s.json").write_text(
            json.dumps(
                {
                    "documents": [
                        {"identity_key": "file:///en/a.html", "language": "en-us", "slug": "a", "remote_id": "en-a"},
                        {"identity_key": "file:///fr/a.html", "language": "fr-fr", "slug": "a"},
                    ]
                }
            )
        )
        with (
            patch.dict("os.environ", _ENV, clear=True),
            patch("prismic_import.main.setup_logging"),
            patch("prismic_import.main.migration_api_client", side_effect=lambda cfg: api_client_factory(migration_api)),
            patch("prismic_import.main.asset_api_client", side_effect=lambda cfg: api_client_factory(asset_api)),
        ):
            code = await _amain(
                ["s.json", "--state-dir", str(tmp_path), "--main-language", "en-us", "--no-fields"]
            )

        assert code == 0
        assert sorted(migration_api.calls()) == [("POST", "/documents"), ("PUT", "/documents/en-a")]
        fr_body = next(b for b in migration_api.json_bodies() if b["lang"] == "fr-fr")
        assert fr_body["alternate_language_id"] == "en-a"
        assert fr_body["data"] == {}

        saved = json.loads((tmp_path / "s-synced.json").read_text())
        assert all(d["remote_id"] for d in saved["documents"])

    async def test_failed_stage_exits_with_2(self, tmp_path, migration_api, asset_api, api_client_factory):
        (tmp_path / "s.json").write_text(json.dumps({"documents": [{"identity_key": "file:///a.html"}]}))
        migration_api.fail_paths["/documents"] = 400
        with (
            patch.dict("os.environ", _ENV, clear=True),
            patch("prismic_import.main.setup_logging"),
            patch("prismic_import.main.migration_api_client", side_effect=lambda cfg: api_client_factory(migration_api)),
            patch("prismic_import.main.asset_api_client", side_effect=lambda cfg: api_client_factory(asset_api)),
        ):
            code = await _amain(["s.json", "--state-dir", str(tmp_path)])

        assert code == 2
        assert not (tmp_path / "s-synced.json").exists()
