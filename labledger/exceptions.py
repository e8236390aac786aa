"""Error taxonomy for the experiment registry.

Decode-level errors are contained per item during a bulk load. Every
other error aborts only the operation in flight and is reported through
the transaction notifier.
"""

from __future__ import annotations


class LabLedgerError(Exception):
    """Base class for all registry errors."""


class ConfigError(LabLedgerError, ValueError):
    """Configuration-related error."""


class DecodeError(LabLedgerError):
    """A blob is empty, malformed or missing a required field."""


class AuthorizationError(LabLedgerError):
    """The acting account may not perform the requested transition."""


class InvalidTransitionError(LabLedgerError):
    """The requested status edge is not part of the lifecycle."""


class NotFoundError(LabLedgerError):
    """No record is stored under the requested id."""


class TransportError(LabLedgerError):
    """The blob store could not be reached or answered with an error."""


class RemoteWriteError(TransportError):
    """A write failed remotely (reverted, gateway error, transport failure)."""


class UserRejectedError(RemoteWriteError):
    """The signing agent declined the transaction."""


class WalletNotConnectedError(LabLedgerError):
    """An operation that needs a signing account was started without one."""


class IdCollisionError(LabLedgerError):
    """No unused experiment id could be generated."""


class OperationInProgressError(LabLedgerError):
    """An operation of the same kind is already pending for this record."""
