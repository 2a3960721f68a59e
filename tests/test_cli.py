"""Tests for the command-line interface.

HOW: main() is called with an explicit argv. The convert command's
pipeline coroutine is patched out so no network is touched.
"""

from unittest.mock import patch

import pytest

from chart_converter.cli import build_parser, main
from chart_converter.config import QUEUE_CAPACITY
from chart_converter.pipeline import PipelineReport
from chart_converter.store import (
    BACKGROUND_TYPE,
    BGM_TYPE,
    CONVERTED_CHART_TYPE,
    COVER_TYPE,
    ArchiveStore,
    LevelRecord,
)


class TestParser:
    def test_convert_defaults(self):
        args = build_parser().parse_args(["convert"])
        assert args.command == "convert"
        assert args.queue_capacity == QUEUE_CAPACITY
        assert args.verbose is False

    def test_serve_options(self):
        args = build_parser().parse_args(["--db", "x.db", "serve", "--port", "8080"])
        assert args.db == "x.db"
        assert args.port == 8080

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestInitDb:
    def test_creates_tables(self, tmp_path):
        db = str(tmp_path / "archive.db")
        main(["--db", db, "init-db"])
        with ArchiveStore(db) as store:
            assert store.all_levels() == []
            assert store.source_charts() == []


class TestConvert:
    def test_missing_webhook_exits_1(self, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("WEBHOOK_URL", raising=False)
        with pytest.raises(SystemExit) as exc_info:
            main(["--db", str(tmp_path / "archive.db"), "convert"])
        assert exc_info.value.code == 1
        assert "WEBHOOK_URL" in capsys.readouterr().err

    def test_runs_pipeline(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("WEBHOOK_URL", "https://hooks.test/api/webhooks/1/token")

        async def fake_run(args, webhook_url):
            assert webhook_url == "https://hooks.test/api/webhooks/1/token"
            return PipelineReport(converted=2, delivered=2)

        with patch("chart_converter.cli._run_convert", new=fake_run):
            main(["--db", str(tmp_path / "archive.db"), "convert"])
        assert "2 converted" in capsys.readouterr().err


class TestCheck:
    def _store(self, path, complete):
        with ArchiveStore(path) as store:
            store.ensure_schema()
            store.insert_level(LevelRecord(
                name="frpt-a", title="t", artists="a", author="c", description="", rating=1,
            ))
            types = [COVER_TYPE, BGM_TYPE, BACKGROUND_TYPE]
            if complete:
                types.append(CONVERTED_CHART_TYPE)
            for file_type in types:
                store.replace_file("frpt-a", file_type, "h", "u")

    def test_complete_exits_0(self, tmp_path, capsys):
        db = str(tmp_path / "archive.db")
        self._store(db, complete=True)
        main(["--db", db, "check"])
        assert "All levels complete" in capsys.readouterr().err

    def test_incomplete_exits_1(self, tmp_path, capsys):
        db = str(tmp_path / "archive.db")
        self._store(db, complete=False)
        with pytest.raises(SystemExit) as exc_info:
            main(["--db", db, "check"])
        assert exc_info.value.code == 1
        assert "frpt-a: missing NewLevelData" in capsys.readouterr().err
