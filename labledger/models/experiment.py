"""Experiment record: the unit stored under one blob key."""

from __future__ import annotations

import secrets
import string
import time
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_SUFFIX_LEN = 7


class ExperimentStatus(StrEnum):
    PENDING = "pending"
    ANALYZED = "analyzed"
    ARCHIVED = "archived"


def new_experiment_id() -> str:
    """Time-based id with a random base-36 suffix, e.g. ``1718000000000-k3j9x0a``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LEN))
    return f"{int(time.time() * 1000)}-{suffix}"


class ExperimentRecord(BaseModel):
    """One experiment as stored in the blob store.

    Wire names are camelCase. ``id`` is never part of the blob: it is
    recovered from the key the blob was read from. Unknown wire fields
    are kept so a status change does not drop them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id: str = Field(exclude=True)
    experiment_name: str = Field(alias="experimentName")
    participant: str
    timestamp: int
    encrypted_responses: str = Field(alias="encryptedResponses")
    status: ExperimentStatus = ExperimentStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status == ExperimentStatus.ARCHIVED


class NewExperiment(BaseModel):
    """Creation draft as entered by the researcher."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    experiment_name: str = Field(alias="experimentName")
    question_set: str = Field(alias="questionSet")
    participant_info: str = Field(default="", alias="participantInfo")

    @field_validator("experiment_name", "question_set")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("required field is empty")
        return value

    def payload(self) -> dict[str, str]:
        """The plaintext that goes into the envelope."""
        return self.model_dump(by_alias=True)
