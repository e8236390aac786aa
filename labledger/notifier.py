"""Transaction status notifier: idle -> pending -> success/error -> idle.

Terminal states are held for a fixed time and then dismissed by a timer
on the running event loop. Starting a new operation supersedes any
scheduled dismissal. The timers only drive feedback; they never cancel
the remote call the status describes.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from labledger.models.state import TxState, TxStatus

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger()


class TransactionNotifier:
    def __init__(
        self,
        *,
        success_hold_s: float = 2.0,
        error_hold_s: float = 3.0,
        info_hold_s: float = 3.0,
    ) -> None:
        self.success_hold_s = success_hold_s
        self.error_hold_s = error_hold_s
        self.info_hold_s = info_hold_s
        self._status = TxStatus()
        self._listeners: list[Callable[[TxStatus], None]] = []
        self._dismiss_handle: asyncio.TimerHandle | None = None
        self._generation = 0

    @property
    def status(self) -> TxStatus:
        return self._status

    def subscribe(self, listener: Callable[[TxStatus], None]) -> Callable[[], None]:
        """Register *listener* for every status change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def pending(self, message: str, *, operation: str = "", record_id: str | None = None) -> None:
        self._cancel_dismiss()
        self._generation += 1
        self._publish(
            TxStatus(
                state=TxState.PENDING,
                message=message,
                operation=operation,
                record_id=record_id,
            )
        )

    def succeed(self, message: str, *, hold_s: float | None = None) -> None:
        self._finish(TxState.SUCCESS, message, self.success_hold_s if hold_s is None else hold_s)

    def fail(self, message: str, *, hold_s: float | None = None) -> None:
        self._finish(TxState.ERROR, message, self.error_hold_s if hold_s is None else hold_s)

    def info(self, message: str, *, ok: bool, operation: str = "") -> None:
        """Show a one-shot result that was never pending (e.g. a status probe)."""
        self._cancel_dismiss()
        self._generation += 1
        self._status = TxStatus(operation=operation)
        self._finish(TxState.SUCCESS if ok else TxState.ERROR, message, self.info_hold_s)

    def reset(self) -> None:
        self._cancel_dismiss()
        self._generation += 1
        self._publish(TxStatus())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finish(self, state: TxState, message: str, hold_s: float) -> None:
        self._publish(self._status.model_copy(update={"state": state, "message": message}))
        self._schedule_dismiss(hold_s)

    def _schedule_dismiss(self, hold_s: float) -> None:
        self._cancel_dismiss()
        loop = asyncio.get_running_loop()
        self._dismiss_handle = loop.call_later(hold_s, self._dismiss, self._generation)

    def _dismiss(self, generation: int) -> None:
        self._dismiss_handle = None
        if generation != self._generation:
            return
        self._publish(TxStatus())

    def _cancel_dismiss(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None

    def _publish(self, status: TxStatus) -> None:
        self._status = status
        logger.debug("Transaction status", state=status.state.value, message=status.message)
        for listener in list(self._listeners):
            listener(status)
