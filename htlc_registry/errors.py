"""
Failure types raised by the swap registry.

Every failure aborts the operation that raised it and leaves the registry
exactly as it was. The numeric codes are stable so callers outside Python
(and the CLI exit output) can match on them.
"""


class SwapError(Exception):
    """Base class for swap registry failures."""

    code = 0
    default_message = "Swap operation failed"

    def __init__(self, message: str | None = None, **context):
        self.context = context
        super().__init__(message or self.default_message)

    def __str__(self) -> str:
        return f"{self.args[0]} (code {self.code})"


class LedgerError(SwapError):
    """The ledger refused a transfer."""

    default_message = "Ledger transfer failed"


class InsufficientFunds(LedgerError):
    """Sender balance cannot cover the transfer amount."""

    code = 1
    default_message = "Insufficient funds"


class ExpiryInPast(SwapError):
    """Registration with an expiration height that is not in the future."""

    code = 1000
    default_message = "Expiration height is not in the future"


class InvalidPreimage(SwapError):
    """The presented secret does not hash to the stored commitment."""

    code = 1001
    default_message = "Secret does not match the hash commitment"


class SwapIntentExpired(SwapError):
    """Execution attempted after the expiration height."""

    code = 1002
    default_message = "Swap intent has expired"


class UnknownSwapIntent(SwapError):
    """
    No active swap is visible to the caller.

    Raised both when no active record exists and when a caller other than
    the sender tries to cancel, so the two cases cannot be told apart.
    """

    code = 1003
    default_message = "Unknown swap intent"


class StorageError(SwapError):
    """Persisted registry state cannot be used as requested."""

    code = 2000
    default_message = "Stored registry state is unusable"


class HashFunctionMismatch(StorageError):
    """The configured secret hash differs from the one the registry was created with."""

    code = 2001
    default_message = "Configured hash function does not match the stored registry"


class StaleSnapshot(StorageError):
    """The stored registry changed after this copy of it was loaded."""

    code = 2002
    default_message = "Registry was modified by another writer since it was loaded"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        InsufficientFunds,
        ExpiryInPast,
        InvalidPreimage,
        SwapIntentExpired,
        UnknownSwapIntent,
        HashFunctionMismatch,
        StaleSnapshot,
    )
}
