"""Port interfaces (Protocols) for the external collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

    from labledger.models.receipt import TransactionReceipt


@runtime_checkable
class BlobStorePort(Protocol):
    """Opaque key -> bytes storage surface with independent single-key get/set.

    Reads are free and side-effect-free. Writes are signed by ``sender``,
    asynchronous, and may be rejected by the signing agent or revert.
    There is no cross-key atomicity and no listing.
    """

    async def get_data(self, key: str) -> bytes: ...
    async def set_data(self, key: str, value: bytes, *, sender: str) -> TransactionReceipt: ...
    async def is_available(self) -> bool: ...


@runtime_checkable
class WalletPort(Protocol):
    """Interface to the wallet that owns the signing accounts."""

    async def request_accounts(self) -> list[str]: ...
    def on_accounts_changed(self, listener: Callable[[list[str]], None]) -> None: ...
