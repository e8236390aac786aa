"""labledger: experiment registry and lifecycle controller over a ledger-backed blob store."""

__version__ = "0.1.0"
