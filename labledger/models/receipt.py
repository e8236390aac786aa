"""Receipt returned by a confirmed blob store write."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TransactionReceipt(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transaction_hash: str = Field(alias="transactionHash")
    status: int = 1
    block_number: int | None = Field(default=None, alias="blockNumber")

    @property
    def succeeded(self) -> bool:
        return self.status == 1
