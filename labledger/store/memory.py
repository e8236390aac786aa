"""In-memory blob store with failure injection."""

from __future__ import annotations

import asyncio
import hashlib

import structlog

from labledger.exceptions import RemoteWriteError, TransportError, UserRejectedError
from labledger.models.receipt import TransactionReceipt

logger = structlog.get_logger()


class InMemoryBlobStore:
    """Dict-backed ``BlobStorePort``.

    Every call yields to the event loop once so callers observe the same
    suspension points as with a remote store. Failures can be injected
    per key: write failures fire once, read failures persist until
    cleared.
    """

    def __init__(self, data: dict[str, bytes] | None = None, *, available: bool = True) -> None:
        self._data: dict[str, bytes] = dict(data or {})
        self.available = available
        self.calls: list[tuple[str, str]] = []
        self._write_failures: dict[str, Exception] = {}
        self._read_failures: dict[str, Exception] = {}
        self._reject_next_write = False
        self._nonce = 0

    # ------------------------------------------------------------------
    # BlobStorePort
    # ------------------------------------------------------------------

    async def get_data(self, key: str) -> bytes:
        await asyncio.sleep(0)
        self.calls.append(("getData", key))
        if key in self._read_failures:
            raise self._read_failures[key]
        return self._data.get(key, b"")

    async def set_data(self, key: str, value: bytes, *, sender: str) -> TransactionReceipt:
        await asyncio.sleep(0)
        self.calls.append(("setData", key))
        if self._reject_next_write:
            self._reject_next_write = False
            raise UserRejectedError("user rejected transaction")
        failure = self._write_failures.pop(key, None)
        if failure is not None:
            raise failure
        self._data[key] = bytes(value)
        self._nonce += 1
        tx_hash = hashlib.sha256(f"{sender}:{key}:{self._nonce}".encode()).hexdigest()
        logger.debug("In-memory write", key=key, sender=sender, size=len(value))
        return TransactionReceipt(transaction_hash=f"0x{tx_hash}", status=1, block_number=self._nonce)

    async def is_available(self) -> bool:
        await asyncio.sleep(0)
        self.calls.append(("isAvailable", ""))
        return self.available

    # ------------------------------------------------------------------
    # Failure injection and inspection
    # ------------------------------------------------------------------

    def fail_next_write(self, key: str, exc: Exception | None = None) -> None:
        self._write_failures[key] = exc or RemoteWriteError("execution reverted")

    def reject_next_write(self) -> None:
        self._reject_next_write = True

    def fail_reads(self, key: str, exc: Exception | None = None) -> None:
        self._read_failures[key] = exc or TransportError(f"read of {key} failed")

    def clear_failures(self) -> None:
        self._write_failures.clear()
        self._read_failures.clear()
        self._reject_next_write = False

    def put(self, key: str, value: bytes) -> None:
        """Write directly, bypassing signing and failure injection."""
        self._data[key] = bytes(value)

    def peek(self, key: str) -> bytes:
        """Read directly, without recording a call or yielding."""
        return self._data.get(key, b"")

    def keys(self) -> list[str]:
        return sorted(self._data)

    def writes(self) -> list[str]:
        return [key for method, key in self.calls if method == "setData"]
