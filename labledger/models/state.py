"""Application state snapshots: transaction status and the session view."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from labledger.models.experiment import ExperimentRecord, ExperimentStatus


class TxState(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class OperationKind(StrEnum):
    CREATE = "create"
    ANALYZE = "analyze"
    ARCHIVE = "archive"
    STATUS = "status"
    AVAILABILITY = "availability"


class TxStatus(BaseModel):
    """What the transaction notifier currently shows."""

    model_config = ConfigDict(frozen=True)

    state: TxState = TxState.IDLE
    message: str = ""
    operation: str = ""
    record_id: str | None = None

    @property
    def visible(self) -> bool:
        return self.state != TxState.IDLE


class OperationResult(BaseModel):
    """Terminal outcome of one orchestrated operation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: OperationKind
    ok: bool
    message: str
    record_id: str | None = None
    record: ExperimentRecord | None = None
    error: Exception | None = None


class AppState(BaseModel):
    """Immutable view of the session. Every session operation returns a new one."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    account: str = ""
    tx: TxStatus = TxStatus()
    experiments: tuple[ExperimentRecord, ...] = ()
    is_refreshing: bool = False
    store_available: bool | None = None
    last_operation: OperationResult | None = None

    @property
    def connected(self) -> bool:
        return bool(self.account)

    def _count(self, status: ExperimentStatus) -> int:
        return sum(1 for e in self.experiments if e.status == status)

    @property
    def pending_count(self) -> int:
        return self._count(ExperimentStatus.PENDING)

    @property
    def analyzed_count(self) -> int:
        return self._count(ExperimentStatus.ANALYZED)

    @property
    def archived_count(self) -> int:
        return self._count(ExperimentStatus.ARCHIVED)

    @property
    def total_count(self) -> int:
        return len(self.experiments)

    def is_owner(self, address: str) -> bool:
        return bool(self.account) and self.account.lower() == address.lower()

    def can_analyze(self, record: ExperimentRecord) -> bool:
        return self.is_owner(record.participant) and record.status == ExperimentStatus.PENDING
