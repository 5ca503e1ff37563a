"""
Custom exception classes for the rental lifecycle engine.

These exceptions give jobs precise error types to catch so that a failure
can be contained to a single row, recipient or run instead of stopping the
scheduler.
"""


class RentCycleError(Exception):
    """Base class for every error raised by the engine."""

    default_message = "Error: rental engine failure"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class StoreUnavailableError(RentCycleError):
    """Raised when the backing store cannot be read or persisted."""

    default_message = "Error: store unavailable"


class OwnerNotFoundError(RentCycleError):
    """Raised when an organization has no resolvable owning user."""

    default_message = "Error: organization owner not found"


class InvalidNotificationError(RentCycleError):
    """Raised when a notification payload is malformed."""

    default_message = "Error: invalid notification payload"


class TranslationError(RentCycleError):
    """Raised by the composer when a template key cannot be resolved."""

    default_message = "Error: translation key not found"


class EmailDispatchError(RentCycleError):
    """Raised when an outbound email cannot be delivered."""

    default_message = "Error: email dispatch failed"
