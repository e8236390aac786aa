"""Blob store clients.

Each client implements ``BlobStorePort``:
- ``HttpBlobStore`` talks JSON-RPC to a gateway fronting the storage contract
- ``InMemoryBlobStore`` keeps blobs in a dict, for dry runs and tests
"""

from labledger.store.http import HttpBlobStore
from labledger.store.memory import InMemoryBlobStore

__all__ = [
    "HttpBlobStore",
    "InMemoryBlobStore",
]
