"""Tests for the command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from contexthub.__main__ import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("CONTEXT_HUB_PORT", raising=False)


def run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


class TestCLI:
    def test_no_command_prints_usage(self, capsys):
        assert run([]) == 1
        assert "Usage" in capsys.readouterr().out

    def test_status_not_running(self, tmp_path: Path, capsys):
        assert run(["status", "--root", str(tmp_path)]) == 0
        assert "not running" in capsys.readouterr().out

    def test_stop_not_running(self, tmp_path: Path, capsys):
        assert run(["stop", "--root", str(tmp_path)]) == 0
        assert "not running" in capsys.readouterr().out

    def test_query(self, tmp_path: Path, capsys):
        journal = tmp_path / ".contexthub" / "journal"
        journal.mkdir(parents=True)
        (journal / "a.jsonl").write_text(
            json.dumps({"title": "Deploy pipeline", "summary": "ships on merge"}), encoding="utf-8"
        )
        assert run(["query", "deploy", "--root", str(tmp_path)]) == 0
        out = capsys.readouterr().out
        assert "Sources: log" in out
        assert "[log] Deploy pipeline" in out
