"""Re-exports all Pydantic models."""

from labledger.models.experiment import (
    ExperimentRecord,
    ExperimentStatus,
    NewExperiment,
    new_experiment_id,
)
from labledger.models.receipt import TransactionReceipt
from labledger.models.state import AppState, OperationKind, OperationResult, TxState, TxStatus

__all__ = [
    "AppState",
    "ExperimentRecord",
    "ExperimentStatus",
    "NewExperiment",
    "OperationKind",
    "OperationResult",
    "TransactionReceipt",
    "TxState",
    "TxStatus",
    "new_experiment_id",
]
