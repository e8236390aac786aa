"""Transaction orchestrator: dependent store writes as one user-visible operation.

Each operation moves the notifier to pending, runs its steps in order
(one awaited store call per step), then shows success or error and lets
the notifier dismiss itself. Nothing is rolled back: a creation whose
record write lands but whose index write fails leaves an orphan record,
reported as an error so the user can retry with the same id.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from labledger import codec
from labledger.exceptions import (
    IdCollisionError,
    InvalidTransitionError,
    LabLedgerError,
    NotFoundError,
    OperationInProgressError,
    UserRejectedError,
    WalletNotConnectedError,
)
from labledger.index import IndexManager, record_key
from labledger.lifecycle import LifecycleController, same_account
from labledger.metrics import operation_duration_seconds, operations_total
from labledger.models.experiment import ExperimentRecord, ExperimentStatus, new_experiment_id
from labledger.models.state import OperationKind, OperationResult
from labledger.notifier import TransactionNotifier

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from labledger.config import Settings
    from labledger.models.experiment import NewExperiment
    from labledger.protocols import BlobStorePort

logger = structlog.get_logger()


@dataclass(frozen=True)
class _Messages:
    pending: str
    success: str
    failure_prefix: str


MESSAGES: dict[OperationKind, _Messages] = {
    OperationKind.CREATE: _Messages(
        pending="Encrypting participant data...",
        success="Encrypted experiment data submitted securely!",
        failure_prefix="Submission failed",
    ),
    OperationKind.ANALYZE: _Messages(
        pending="Analyzing encrypted data...",
        success="Analysis completed successfully!",
        failure_prefix="Analysis failed",
    ),
    OperationKind.ARCHIVE: _Messages(
        pending="Archiving experiment data...",
        success="Experiment archived successfully!",
        failure_prefix="Archiving failed",
    ),
    OperationKind.STATUS: _Messages(
        pending="Updating experiment status...",
        success="Experiment status updated!",
        failure_prefix="Status change failed",
    ),
}

USER_REJECTED_MESSAGE = "Transaction rejected by user"
STORE_AVAILABLE_MESSAGE = "Blob store is available and ready!"
STORE_UNAVAILABLE_MESSAGE = "Blob store is not available"

_STATUS_OPERATIONS: dict[ExperimentStatus, OperationKind] = {
    ExperimentStatus.ANALYZED: OperationKind.ANALYZE,
    ExperimentStatus.ARCHIVED: OperationKind.ARCHIVE,
}


@dataclass
class _Attempt:
    """What an operation has produced so far, kept for error reporting."""

    record_id: str | None = None
    record: ExperimentRecord | None = None


class TransactionOrchestrator:
    """Runs creations and status changes against the blob store."""

    def __init__(
        self,
        store: BlobStorePort,
        notifier: TransactionNotifier | None = None,
        *,
        lifecycle: LifecycleController | None = None,
        id_factory: Callable[[], str] = new_experiment_id,
        clock: Callable[[], float] = time.time,
        id_collision_retries: int = 3,
    ) -> None:
        self._store = store
        self.notifier = notifier or TransactionNotifier()
        self._index = IndexManager(store)
        self._lifecycle = lifecycle or LifecycleController()
        self._id_factory = id_factory
        self._clock = clock
        self._id_collision_retries = id_collision_retries
        self._in_flight: set[tuple[OperationKind, str]] = set()

    @classmethod
    def from_settings(
        cls,
        store: BlobStorePort,
        settings: Settings,
        notifier: TransactionNotifier | None = None,
    ) -> TransactionOrchestrator:
        notifier = notifier or TransactionNotifier(
            success_hold_s=settings.success_display_s,
            error_hold_s=settings.error_display_s,
            info_hold_s=settings.info_display_s,
        )
        return cls(store, notifier, id_collision_retries=settings.id_collision_retries)

    def is_in_flight(self, kind: OperationKind, record_id: str | None = None) -> bool:
        return (kind, record_id or "") in self._in_flight

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_experiment(
        self,
        draft: NewExperiment,
        account: str,
        *,
        experiment_id: str | None = None,
    ) -> OperationResult:
        """Write a new pending record, then append its id to the index.

        Pass *experiment_id* to retry a creation that left an orphan. A
        record already stored under that id is kept exactly as it is and
        only indexing is retried; the record is written only when its key
        is empty or holds an undecodable blob.
        """

        async def steps(attempt: _Attempt) -> None:
            existing = None
            if experiment_id is None:
                record_id = await self._unused_id()
            else:
                record_id = experiment_id
                existing = await self._retry_target(record_id, account)
            attempt.record_id = record_id
            structlog.contextvars.bind_contextvars(record_id=record_id)
            key = record_key(record_id)

            if existing is None:
                record = ExperimentRecord(
                    id=record_id,
                    experiment_name=draft.experiment_name,
                    participant=account,
                    timestamp=int(self._clock()),
                    encrypted_responses=codec.wrap_payload(draft.payload()),
                    status=ExperimentStatus.PENDING,
                )
                await self._store.set_data(key, codec.encode(record), sender=account)
            else:
                logger.info("Record already stored, retrying index only", status=existing.status.value)
                record = existing
            attempt.record = record

            try:
                await self._index.append_id(record_id, sender=account)
            except LabLedgerError:
                logger.warning("Record written but not indexed; orphaned until retried", key=key)
                raise

        return await self._run(OperationKind.CREATE, experiment_id, account, steps)

    async def _unused_id(self) -> str:
        """Generate an id whose record key is still empty (verify, then retry)."""
        for attempt in range(self._id_collision_retries + 1):
            candidate = self._id_factory()
            try:
                key = record_key(candidate)
            except ValueError:
                logger.warning("Generated id is not a valid key", candidate=candidate)
                continue
            if not await self._store.get_data(key):
                return candidate
            logger.warning("Generated id already in use", candidate=candidate, attempt=attempt + 1)
        raise IdCollisionError(
            f"no unused experiment id after {self._id_collision_retries + 1} attempts"
        )

    async def _retry_target(self, record_id: str, account: str) -> ExperimentRecord | None:
        """The record already stored under *record_id*, if it decodes and is ours.

        Returns None when the key is empty or undecodable, meaning the
        record must be (re)written. Another participant's record is refused.
        """
        try:
            key = record_key(record_id)
        except ValueError as exc:
            raise IdCollisionError(str(exc)) from exc
        blob = await self._store.get_data(key)
        if not blob:
            return None
        try:
            existing = codec.decode(blob, record_id)
        except LabLedgerError:
            logger.warning("Existing blob undecodable, rewriting", record_id=record_id)
            return None
        if not same_account(existing.participant, account):
            raise IdCollisionError(f"experiment id {record_id} belongs to another participant")
        return existing

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def analyze_experiment(self, record_id: str, account: str) -> OperationResult:
        return await self.change_status(record_id, ExperimentStatus.ANALYZED, account)

    async def archive_experiment(self, record_id: str, account: str) -> OperationResult:
        return await self.change_status(record_id, ExperimentStatus.ARCHIVED, account)

    async def change_status(
        self,
        record_id: str,
        target: ExperimentStatus,
        account: str,
    ) -> OperationResult:
        """Read, transition and write back one record. The index is untouched."""
        kind = _STATUS_OPERATIONS.get(target, OperationKind.STATUS)

        async def steps(attempt: _Attempt) -> None:
            attempt.record_id = record_id
            if kind == OperationKind.STATUS:
                raise InvalidTransitionError(f"no operation moves an experiment to {target.value}")
            try:
                key = record_key(record_id)
            except ValueError as exc:
                raise NotFoundError(str(exc)) from exc
            blob = await self._store.get_data(key)
            if not blob:
                raise NotFoundError("Experiment not found")
            record = codec.decode(blob, record_id)
            updated = self._lifecycle.transition(record, target, account)
            await self._store.set_data(key, codec.encode(updated), sender=account)
            attempt.record = updated

        return await self._run(kind, record_id, account, steps)

    # ------------------------------------------------------------------
    # Availability probe
    # ------------------------------------------------------------------

    async def check_availability(self) -> bool:
        try:
            available = await self._store.is_available()
        except LabLedgerError as exc:
            logger.error("Availability probe failed", error=str(exc))
            available = False
        message = STORE_AVAILABLE_MESSAGE if available else STORE_UNAVAILABLE_MESSAGE
        self.notifier.info(message, ok=available, operation=OperationKind.AVAILABILITY.value)
        operations_total.labels(
            kind=OperationKind.AVAILABILITY.value,
            outcome="success" if available else "error",
        ).inc()
        return available

    # ------------------------------------------------------------------
    # Runner
    # ------------------------------------------------------------------

    async def _run(
        self,
        kind: OperationKind,
        record_id: str | None,
        account: str,
        steps: Callable[[_Attempt], Awaitable[None]],
    ) -> OperationResult:
        guard = (kind, record_id or "")
        if guard in self._in_flight:
            raise OperationInProgressError(
                f"{kind.value} already pending for {record_id or 'a new experiment'}"
            )
        self._in_flight.add(guard)

        messages = MESSAGES[kind]
        attempt = _Attempt(record_id=record_id)
        started = time.monotonic()
        structlog.contextvars.bind_contextvars(operation=kind.value, record_id=record_id)
        self.notifier.pending(messages.pending, operation=kind.value, record_id=record_id)
        try:
            if not account:
                raise WalletNotConnectedError("Please connect wallet first")
            await steps(attempt)
        except asyncio.CancelledError:
            self.notifier.fail(f"{messages.failure_prefix}: cancelled")
            operations_total.labels(kind=kind.value, outcome="cancelled").inc()
            logger.warning("Operation cancelled; the remote write may still land")
            raise
        except UserRejectedError as exc:
            result = self._failed(kind, attempt, USER_REJECTED_MESSAGE, exc, outcome="rejected")
        except LabLedgerError as exc:
            result = self._failed(kind, attempt, f"{messages.failure_prefix}: {exc}", exc)
        except Exception as exc:
            logger.exception("Unexpected error during operation")
            message = f"{messages.failure_prefix}: {exc or type(exc).__name__}"
            result = self._failed(kind, attempt, message, exc)
        else:
            self.notifier.succeed(messages.success)
            operations_total.labels(kind=kind.value, outcome="success").inc()
            logger.info("Operation succeeded")
            result = OperationResult(
                kind=kind,
                ok=True,
                message=messages.success,
                record_id=attempt.record_id,
                record=attempt.record,
            )
        finally:
            self._in_flight.discard(guard)
            operation_duration_seconds.labels(kind=kind.value).observe(time.monotonic() - started)
            structlog.contextvars.unbind_contextvars("operation", "record_id")
        return result

    def _failed(
        self,
        kind: OperationKind,
        attempt: _Attempt,
        message: str,
        exc: Exception,
        *,
        outcome: str = "error",
    ) -> OperationResult:
        self.notifier.fail(message)
        operations_total.labels(kind=kind.value, outcome=outcome).inc()
        logger.warning("Operation failed", error=str(exc), error_type=type(exc).__name__)
        return OperationResult(
            kind=kind,
            ok=False,
            message=message,
            record_id=attempt.record_id,
            record=attempt.record,
            error=exc,
        )
