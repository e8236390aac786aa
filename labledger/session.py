"""Lab session: the application state object the UI renders from.

Every operation returns a fresh ``AppState`` snapshot. The experiment list
is rebuilt wholesale on each refresh; a successful write is followed by
a refresh so the view reflects the store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from labledger.exceptions import TransportError
from labledger.models.state import AppState
from labledger.orchestrator import TransactionOrchestrator
from labledger.refresh import RefreshPipeline
from labledger.wallet import WalletConnection

if TYPE_CHECKING:
    from labledger.config import Settings
    from labledger.models.experiment import NewExperiment
    from labledger.models.state import OperationResult, TxStatus
    from labledger.protocols import BlobStorePort, WalletPort

logger = structlog.get_logger()


class LabSession:
    def __init__(
        self,
        store: BlobStorePort,
        settings: Settings,
        *,
        orchestrator: TransactionOrchestrator | None = None,
    ) -> None:
        self.settings = settings
        self.orchestrator = orchestrator or TransactionOrchestrator.from_settings(store, settings)
        self.wallet = WalletConnection()
        self._pipeline = RefreshPipeline(store)
        self._state = AppState()

        self.orchestrator.notifier.subscribe(self._on_tx_status)
        self.wallet.on_change(self._on_account)

    @property
    def state(self) -> AppState:
        return self._state

    def _update(self, **changes: Any) -> AppState:
        self._state = self._state.model_copy(update=changes)
        return self._state

    def _on_tx_status(self, status: TxStatus) -> None:
        self._update(tx=status)

    def _on_account(self, account: str) -> None:
        self._update(account=account)

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------

    async def connect(self, wallet: WalletPort) -> AppState:
        await self.wallet.connect(wallet)
        return self._state

    def disconnect(self) -> AppState:
        self.wallet.disconnect()
        return self._state

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def refresh(self) -> AppState:
        self._update(is_refreshing=True)
        try:
            records = await self._pipeline.refresh()
        except TransportError as exc:
            logger.error("Could not read experiment index; keeping previous view", error=str(exc))
            return self._update(is_refreshing=False)
        return self._update(experiments=tuple(records), is_refreshing=False)

    async def check_availability(self) -> AppState:
        available = await self.orchestrator.check_availability()
        return self._update(store_available=available)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_experiment(
        self,
        draft: NewExperiment,
        *,
        experiment_id: str | None = None,
    ) -> AppState:
        result = await self.orchestrator.create_experiment(
            draft, self.wallet.account, experiment_id=experiment_id
        )
        return await self._after(result)

    async def analyze_experiment(self, record_id: str) -> AppState:
        result = await self.orchestrator.analyze_experiment(record_id, self.wallet.account)
        return await self._after(result)

    async def archive_experiment(self, record_id: str) -> AppState:
        result = await self.orchestrator.archive_experiment(record_id, self.wallet.account)
        return await self._after(result)

    async def _after(self, result: OperationResult) -> AppState:
        self._update(last_operation=result)
        if result.ok:
            return await self.refresh()
        return self._state
