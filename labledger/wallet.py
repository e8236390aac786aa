"""Wallet connection: tracks the current signing account."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from labledger.protocols import WalletPort

logger = structlog.get_logger()


class WalletConnection:
    """Holds the account used for authorization checks and signing.

    An account-change event from the wallet replaces the current account
    for every later operation. Operations already running keep the
    account they were started with, because callers read ``account``
    once at the start.
    """

    def __init__(self) -> None:
        self._wallet: WalletPort | None = None
        self._account = ""
        self._listeners: list[Callable[[str], None]] = []

    @property
    def account(self) -> str:
        return self._account

    @property
    def connected(self) -> bool:
        return self._wallet is not None and bool(self._account)

    def on_change(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    async def connect(self, wallet: WalletPort) -> str:
        accounts = await wallet.request_accounts()
        self._wallet = wallet
        wallet.on_accounts_changed(lambda accs: self._accounts_changed(wallet, accs))
        self._set_account(accounts[0] if accounts else "")
        logger.info("Wallet connected", account=self._account)
        return self._account

    def disconnect(self) -> None:
        self._wallet = None
        self._set_account("")
        logger.info("Wallet disconnected")

    def _accounts_changed(self, wallet: WalletPort, accounts: list[str]) -> None:
        if wallet is not self._wallet:
            # stale listener from a wallet that has since been replaced
            return
        self._set_account(accounts[0] if accounts else "")
        logger.info("Wallet account changed", account=self._account)

    def _set_account(self, account: str) -> None:
        self._account = account
        for listener in list(self._listeners):
            listener(account)


class StaticWallet:
    """A wallet with a fixed account list, for the CLI and tests."""

    def __init__(self, *accounts: str) -> None:
        self._accounts = list(accounts)
        self._listeners: list[Callable[[list[str]], None]] = []

    async def request_accounts(self) -> list[str]:
        return list(self._accounts)

    def on_accounts_changed(self, listener: Callable[[list[str]], None]) -> None:
        self._listeners.append(listener)

    def switch(self, *accounts: str) -> None:
        """Simulate the user picking a different account in the wallet."""
        self._accounts = list(accounts)
        for listener in list(self._listeners):
            listener(list(self._accounts))
