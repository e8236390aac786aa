"""JSON-RPC client for the ledger-backed blob store gateway.

The gateway fronts a storage contract exposing ``getData(key)``,
``setData(key, value)`` and ``isAvailable()``. Reads are plain calls;
``setData`` is forwarded to the signing agent for ``from`` and only
answers once the transaction is confirmed or rejected.

Values travel as ``0x``-prefixed hex strings.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from typing_extensions import TypedDict

from labledger.exceptions import RemoteWriteError, TransportError, UserRejectedError
from labledger.metrics import store_calls_total
from labledger.models.receipt import TransactionReceipt
from labledger.retry import RetryExhaustedError, async_with_retry

if TYPE_CHECKING:
    from labledger.config import Settings

logger = structlog.get_logger()

# EIP-1193 provider error: the user rejected the request.
USER_REJECTED_CODE = 4001


class JsonRpcError(TypedDict):
    code: int
    message: str


def _is_user_rejection(error: JsonRpcError) -> bool:
    if error.get("code") == USER_REJECTED_CODE:
        return True
    return "user rejected" in str(error.get("message", "")).lower()


def _error_message(error: object) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


def _decode_hex(value: object) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise TransportError(f"expected 0x-prefixed hex, got {value!r}")
    try:
        return bytes.fromhex(value[2:])
    except ValueError as exc:
        raise TransportError(f"invalid hex payload: {exc}") from exc


class HttpBlobStore:
    """Blob store client speaking JSON-RPC 2.0 over HTTP."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        read_retries: int = 2,
        retry_base_delay: float = 0.5,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.read_retries = read_retries
        self.retry_base_delay = retry_base_delay
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpBlobStore:
        return cls(
            settings.store_url,
            timeout=settings.store_timeout_s,
            read_retries=settings.read_retries,
            retry_base_delay=settings.read_retry_base_delay_s,
        )

    async def _post(self, method: str, params: list[Any]) -> dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        if not isinstance(data, dict):
            raise TransportError(f"{method}: malformed JSON-RPC response")
        return data

    async def _read(self, method: str, params: list[Any]) -> object:
        try:
            data = await async_with_retry(
                lambda: self._post(method, params),
                max_retries=self.read_retries,
                base_delay=self.retry_base_delay,
                retryable=(httpx.TransportError, httpx.HTTPStatusError),
                fn_name=method,
            )
        except RetryExhaustedError as exc:
            store_calls_total.labels(method=method, outcome="error").inc()
            raise TransportError(f"{method} failed: {exc.__cause__}") from exc.__cause__
        except (httpx.HTTPError, ValueError) as exc:
            store_calls_total.labels(method=method, outcome="error").inc()
            raise TransportError(f"{method} failed: {exc}") from exc

        error = data.get("error")
        if error:
            store_calls_total.labels(method=method, outcome="error").inc()
            raise TransportError(f"{method} failed: {_error_message(error)}")
        store_calls_total.labels(method=method, outcome="ok").inc()
        return data.get("result")

    # ------------------------------------------------------------------
    # BlobStorePort
    # ------------------------------------------------------------------

    async def get_data(self, key: str) -> bytes:
        result = await self._read("getData", [key])
        return _decode_hex(result)

    async def is_available(self) -> bool:
        result = await self._read("isAvailable", [])
        return bool(result)

    async def set_data(self, key: str, value: bytes, *, sender: str) -> TransactionReceipt:
        """Submit a signed write and wait for its terminal outcome.

        Never retried: a write that timed out may still confirm later.
        """
        params = [{"from": sender, "key": key, "value": "0x" + value.hex()}]
        try:
            data = await self._post("setData", params)
        except (httpx.HTTPError, ValueError) as exc:
            store_calls_total.labels(method="setData", outcome="error").inc()
            raise RemoteWriteError(str(exc) or type(exc).__name__) from exc
        except TransportError as exc:
            store_calls_total.labels(method="setData", outcome="error").inc()
            raise RemoteWriteError(str(exc)) from exc

        error = data.get("error")
        if error:
            if isinstance(error, dict) and _is_user_rejection(error):
                store_calls_total.labels(method="setData", outcome="rejected").inc()
                raise UserRejectedError(_error_message(error))
            store_calls_total.labels(method="setData", outcome="error").inc()
            raise RemoteWriteError(_error_message(error))

        result = data.get("result")
        if not isinstance(result, dict):
            store_calls_total.labels(method="setData", outcome="error").inc()
            raise RemoteWriteError(f"setData: unexpected result {result!r}")
        try:
            receipt = TransactionReceipt.model_validate(result)
        except ValueError as exc:
            store_calls_total.labels(method="setData", outcome="error").inc()
            raise RemoteWriteError(f"setData: malformed receipt: {exc}") from exc
        if not receipt.succeeded:
            store_calls_total.labels(method="setData", outcome="reverted").inc()
            raise RemoteWriteError(f"transaction {receipt.transaction_hash} reverted")

        store_calls_total.labels(method="setData", outcome="ok").inc()
        logger.info("Blob written", key=key, tx=receipt.transaction_hash, size=len(value))
        return receipt
