"""Tests for the click CLI, wired to an in-memory store."""

from __future__ import annotations

import json
import re

import pytest
from click.testing import CliRunner

from labledger import cli as cli_module
from labledger.cli import cli
from labledger.index import INDEX_KEY
from labledger.models.experiment import ExperimentStatus
from labledger.store import InMemoryBlobStore


@pytest.fixture()
def memory_store(monkeypatch, seed, make_record) -> InMemoryBlobStore:
    store = InMemoryBlobStore()
    seed(
        store,
        make_record("old", timestamp=1_600_000_000, participant="0xA", name="Flanker"),
        make_record(
            "new",
            timestamp=1_700_000_000,
            participant="0xB",
            name="Stroop Test",
            status=ExperimentStatus.ANALYZED,
        ),
    )
    monkeypatch.setattr(cli_module, "_get_store", lambda settings: store)
    return store


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.delenv("STORE_URL", raising=False)
    monkeypatch.delenv("ACCOUNT", raising=False)
    monkeypatch.setenv("SUCCESS_DISPLAY_S", "0")
    monkeypatch.setenv("ERROR_DISPLAY_S", "0")
    monkeypatch.setenv("INFO_DISPLAY_S", "0")
    # configure_logging caches loggers on the runner's stream, which closes after each invoke
    monkeypatch.setattr(cli_module, "configure_logging", lambda **kwargs: None)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


class TestReadCommands:
    def test_ls_newest_first(self, runner, memory_store):
        result = runner.invoke(cli, ["ls"])

        assert result.exit_code == 0
        rows = [line for line in result.output.splitlines() if line.startswith("  [")]
        assert len(rows) == 2
        assert "[new]" in rows[0]
        assert "Stroop Test" in rows[0]
        assert "[old]" in rows[1]

    def test_ls_status_filter(self, runner, memory_store):
        result = runner.invoke(cli, ["ls", "--status", "pending"])

        assert result.exit_code == 0
        assert "Flanker" in result.output
        assert "Stroop Test" not in result.output

    def test_ls_empty(self, runner, monkeypatch):
        monkeypatch.setattr(cli_module, "_get_store", lambda settings: InMemoryBlobStore())
        result = runner.invoke(cli, ["ls"])
        assert "No experiments found." in result.output

    def test_stats(self, runner, memory_store):
        result = runner.invoke(cli, ["stats"])

        assert result.exit_code == 0
        assert re.search(r"Total:\s+2", result.output)
        assert re.search(r"Pending:\s+1", result.output)
        assert re.search(r"Analyzed:\s+1", result.output)
        assert re.search(r"Archived:\s+0", result.output)

    def test_show_reads_unindexed_record(self, runner, memory_store, make_record):
        from labledger import codec
        from labledger.index import record_key

        memory_store.put(record_key("orphan"), codec.encode(make_record("orphan", name="Lost")))
        result = runner.invoke(cli, ["show", "orphan"])

        assert result.exit_code == 0
        assert "Experiment orphan: Lost" in result.output
        assert "experiment_orphan" in result.output

    def test_show_missing(self, runner, memory_store):
        result = runner.invoke(cli, ["show", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_unconfigured_store(self, runner):
        result = runner.invoke(cli, ["ls"])
        assert result.exit_code == 1
        assert "Blob store not configured" in result.output


class TestWriteCommands:
    def test_create(self, runner, memory_store):
        result = runner.invoke(
            cli, ["create", "--name", "N-back", "--questions", "Q7", "--account", "0xA"]
        )

        assert result.exit_code == 0, result.output
        assert "Encrypted experiment data submitted securely!" in result.output
        match = re.search(r"Created experiment (\S+)\.", result.output)
        assert match
        assert match.group(1) in json.loads(memory_store.peek(INDEX_KEY))

    def test_create_uses_account_from_env(self, runner, memory_store, monkeypatch):
        monkeypatch.setenv("ACCOUNT", "0xE")
        result = runner.invoke(cli, ["create", "--name", "N-back", "--questions", "Q7"])
        assert result.exit_code == 0, result.output

    def test_create_requires_account(self, runner, memory_store):
        result = runner.invoke(cli, ["create", "--name", "N-back", "--questions", "Q7"])
        assert result.exit_code == 1
        assert "--account" in result.output

    def test_create_rejects_blank_fields(self, runner, memory_store):
        result = runner.invoke(
            cli, ["create", "--name", " ", "--questions", "Q7", "--account", "0xA"]
        )
        assert result.exit_code == 1
        assert "please fill required fields" in result.output
        assert memory_store.writes() == []

    def test_create_orphan_prints_retry_hint(self, runner, memory_store):
        memory_store.fail_next_write(INDEX_KEY)
        result = runner.invoke(
            cli, ["create", "--name", "N-back", "--questions", "Q7", "--account", "0xA"]
        )

        assert result.exit_code == 1
        assert "Submission failed" in result.output
        assert "--retry-id" in result.output

    def test_analyze_by_participant(self, runner, memory_store):
        result = runner.invoke(cli, ["analyze", "old", "--account", "0xA"])
        assert result.exit_code == 0, result.output
        assert "Analysis completed successfully!" in result.output

    def test_analyze_by_other_account_fails(self, runner, memory_store):
        result = runner.invoke(cli, ["analyze", "old", "--account", "0xB"])
        assert result.exit_code == 1
        assert "Analysis failed" in result.output

    def test_archive(self, runner, memory_store):
        result = runner.invoke(cli, ["archive", "new", "--account", "0xC"])
        assert result.exit_code == 0, result.output
        assert "Experiment archived successfully!" in result.output

    def test_archive_missing(self, runner, memory_store):
        result = runner.invoke(cli, ["archive", "nope", "--account", "0xC"])
        assert result.exit_code == 1
        assert "Archiving failed: Experiment not found" in result.output


class TestCheck:
    def test_available(self, runner, memory_store):
        result = runner.invoke(cli, ["check"])
        assert result.exit_code == 0
        assert "Blob store is available and ready!" in result.output

    def test_unavailable(self, runner, memory_store):
        memory_store.available = False
        result = runner.invoke(cli, ["check"])
        assert result.exit_code == 1
        assert "Blob store is not available" in result.output
