"""Shared test fixtures."""

from __future__ import annotations

import itertools
import json

import pytest

from labledger import codec
from labledger.config import Settings
from labledger.index import INDEX_KEY, record_key
from labledger.models.experiment import ExperimentRecord, ExperimentStatus, NewExperiment
from labledger.notifier import TransactionNotifier
from labledger.orchestrator import TransactionOrchestrator
from labledger.store import InMemoryBlobStore


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        store_url="",
        account="",
        success_display_s=0.0,
        error_display_s=0.0,
        info_display_s=0.0,
        read_retries=0,
        log_level="DEBUG",
        log_format="console",
        _env_file=None,
    )


@pytest.fixture()
def store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture()
def notifier() -> TransactionNotifier:
    return TransactionNotifier(success_hold_s=0.01, error_hold_s=0.02, info_hold_s=0.02)


@pytest.fixture()
def id_factory():
    counter = itertools.count(1)
    return lambda: f"1700000000000-id{next(counter):05d}"


@pytest.fixture()
def orchestrator(store, notifier, id_factory) -> TransactionOrchestrator:
    return TransactionOrchestrator(
        store,
        notifier,
        id_factory=id_factory,
        clock=lambda: 1_700_000_000.0,
    )


@pytest.fixture()
def draft() -> NewExperiment:
    return NewExperiment(
        experiment_name="Stroop Test",
        question_set="Q1",
        participant_info="none",
    )


def _make_record(
    record_id: str,
    *,
    timestamp: int = 100,
    participant: str = "0xA",
    status: ExperimentStatus = ExperimentStatus.PENDING,
    name: str = "Experiment",
) -> ExperimentRecord:
    return ExperimentRecord(
        id=record_id,
        experiment_name=name,
        participant=participant,
        timestamp=timestamp,
        encrypted_responses=codec.wrap_payload({"experimentName": name}),
        status=status,
    )


def _seed(store: InMemoryBlobStore, *records: ExperimentRecord, index: list[str] | None = None) -> None:
    """Put records and an index into the store without going through signing."""
    for record in records:
        store.put(record_key(record.id), codec.encode(record))
    ids = index if index is not None else [r.id for r in records]
    store.put(INDEX_KEY, json.dumps(ids).encode("utf-8"))


@pytest.fixture()
def make_record():
    return _make_record


@pytest.fixture()
def seed():
    return _seed
