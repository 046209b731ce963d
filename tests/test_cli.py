"""Tests for the typer CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from conftest import FakeProvider
from typer.testing import CliRunner

from quorum import Quorum, __version__, cli

if TYPE_CHECKING:
    from pathlib import Path

    from quorum.config import QuorumSettings

runner = CliRunner()


@pytest.fixture
def provider_state() -> FakeProvider:
    """One fake provider shared by every Quorum the CLI opens."""
    return FakeProvider()


@pytest.fixture
def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, provider_state: FakeProvider) -> list[str]:
    monkeypatch.chdir(tmp_path)

    def _open(settings: QuorumSettings) -> Quorum:
        return Quorum(settings, provider=provider_state)

    monkeypatch.setattr(cli, "_open_quorum", _open)
    args = ["--db", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"]
    assert runner.invoke(cli.app, [*args, "setup"]).exit_code == 0
    return args


def invoke(db: list[str], *args: str):
    return runner.invoke(cli.app, [*db, *args])


class TestBasics:
    def test_version(self):
        result = runner.invoke(cli.app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_setup_reports_components(self, db: list[str]):
        result = invoke(db, "setup")
        assert result.exit_code == 0
        assert "Schema ready" in result.output
        assert "embedding_provider: connected" in result.output


class TestContent:
    def test_store_and_search(self, db: list[str]):
        stored = invoke(db, "store", "Kafka notes", "Partitions define parallelism", "--tag", "infra")
        assert stored.exit_code == 0
        assert "embedding: stored" in stored.output

        found = invoke(db, "search", "kafka partitions", "--json")
        payload = json.loads(found.output)
        assert payload["mode"] == "semantic"
        assert payload["results"][0]["title"] == "Kafka notes"

    def test_search_empty(self, db: list[str]):
        result = invoke(db, "search", "anything")
        assert result.exit_code == 0
        assert "No results" in result.output

    def test_search_fallback_note(self, db: list[str], provider_state: FakeProvider):
        invoke(db, "store", "Kafka notes", "Partitions")
        provider_state.available = False

        result = invoke(db, "search", "kafka", "--type", "document")

        assert "Semantic search unavailable" in result.output
        assert "Kafka notes" in result.output

    def test_event_bad_type(self, db: list[str]):
        result = invoke(db, "event", "gossip", "Rumour")
        assert result.exit_code == 1

    def test_event_pending_then_backlog(self, db: list[str], provider_state: FakeProvider):
        provider_state.available = False
        stored = invoke(db, "event", "decision", "Use Kafka", "For ingestion")
        assert "embedding: pending" in stored.output

        provider_state.available = True
        result = invoke(db, "backlog")
        assert "Processed: 1, errors: 0" in result.output


class TestTasks:
    def test_create_update_list(self, db: list[str]):
        created = invoke(db, "task", "Rotate keys", "--priority", "high", "--due", "2026-11-01")
        assert created.exit_code == 0
        task_id = created.output.strip().rsplit(" ", 1)[-1]

        updated = invoke(db, "task", "--id", task_id, "--status", "done")
        assert updated.exit_code == 0

        listed = json.loads(invoke(db, "tasks", "--json").output)
        assert listed[0]["status"] == "done"
        assert listed[0]["priority"] == "high"

    def test_task_without_title(self, db: list[str]):
        result = invoke(db, "task", "--priority", "low")
        assert result.exit_code == 1

    def test_no_tasks(self, db: list[str]):
        assert "No tasks" in invoke(db, "tasks").output


class TestStatus:
    def test_status_text(self, db: list[str]):
        invoke(db, "store", "Doc", "body")
        result = invoke(db, "status")
        assert "Overall: healthy" in result.output
        assert "Documents: 1 (0 awaiting embedding)" in result.output

    def test_status_json_degraded(self, db: list[str], provider_state: FakeProvider):
        provider_state.available = False
        payload = json.loads(invoke(db, "status", "--json").output)
        assert payload["overall"] == "degraded"
        assert payload["components"]["embedding_provider"]["status"] == "unreachable"
