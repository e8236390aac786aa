"""Lifecycle controller: which status edges exist and who may take them."""

from __future__ import annotations

import structlog

from labledger.exceptions import AuthorizationError, InvalidTransitionError
from labledger.models.experiment import ExperimentRecord, ExperimentStatus

logger = structlog.get_logger()

ALLOWED_TRANSITIONS: dict[ExperimentStatus, frozenset[ExperimentStatus]] = {
    ExperimentStatus.PENDING: frozenset({ExperimentStatus.ANALYZED, ExperimentStatus.ARCHIVED}),
    ExperimentStatus.ANALYZED: frozenset({ExperimentStatus.ARCHIVED}),
    ExperimentStatus.ARCHIVED: frozenset(),
}

# Only the participant may analyze. Archiving is open to any connected account.
PARTICIPANT_ONLY: frozenset[ExperimentStatus] = frozenset({ExperimentStatus.ANALYZED})


def same_account(a: str, b: str) -> bool:
    """Account addresses compare case-insensitively (checksum casing differs)."""
    return a.lower() == b.lower()


class LifecycleController:
    def can_transition(self, current: ExperimentStatus, target: ExperimentStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[current]

    def transition(
        self,
        record: ExperimentRecord,
        target: ExperimentStatus,
        acting_account: str,
    ) -> ExperimentRecord:
        """Return *record* moved to *target*, leaving every other field untouched.

        Raises:
            InvalidTransitionError: *target* is not reachable from the current status.
            AuthorizationError: *acting_account* may not take this edge.
        """
        if not self.can_transition(record.status, target):
            raise InvalidTransitionError(
                f"cannot move experiment {record.id} from {record.status.value} to {target.value}"
            )
        if target in PARTICIPANT_ONLY and not same_account(acting_account, record.participant):
            raise AuthorizationError(
                f"only the participant {record.participant} may mark experiment "
                f"{record.id} as {target.value}"
            )

        logger.debug(
            "Status transition",
            record_id=record.id,
            from_status=record.status.value,
            to_status=target.value,
            account=acting_account,
        )
        return record.model_copy(update={"status": target})
