"""Custom exceptions for Inbox Placement.

This module defines the exception hierarchy used throughout the
Inbox Placement package. Mailbox errors are contained per account by
the provider checker; persistence and engine errors escape a test pass
and mark the test as failed.
"""


class InboxPlacementError(Exception):
    """Base exception for all Inbox Placement errors.

    Attributes:
        message: A human-readable description of the error.
    """

    def __init__(self, message: str = "An error occurred in Inbox Placement") -> None:
        """Initialize the exception with an optional message.

        Args:
            message: A description of the error that occurred.
        """
        self.message = message
        super().__init__(self.message)


class ConfigurationError(InboxPlacementError):
    """Raised when account or provider configuration is missing or invalid.

    A check that hits this error never attempts a connection.
    """

    def __init__(self, message: str = "Configuration error") -> None:
        super().__init__(message)


class MailboxError(InboxPlacementError):
    """Base class for errors raised while talking to a monitored mailbox."""

    def __init__(self, message: str = "Mailbox error") -> None:
        super().__init__(message)


class MailboxConnectionError(MailboxError):
    """Raised when the transport to a mailbox cannot be established or drops."""

    def __init__(self, message: str = "Mailbox connection error") -> None:
        super().__init__(message)


class MailboxAuthenticationError(MailboxConnectionError):
    """Raised when the mail server rejects the account credentials."""

    def __init__(self, message: str = "Mailbox authentication failed") -> None:
        super().__init__(message)


class CheckTimeoutError(MailboxError):
    """Raised when a mailbox operation exceeds its bounded wait.

    Attributes:
        timeout: The number of seconds that elapsed before giving up.
    """

    def __init__(
        self,
        message: str = "Mailbox operation timed out",
        timeout: float | None = None,
    ) -> None:
        self.timeout = timeout
        super().__init__(message)


class FetchError(MailboxError):
    """Raised when a matching message was found but its metadata is unreadable.

    Never fatal: the placement is already established by the search hit.
    """

    def __init__(self, message: str = "Message metadata fetch failed") -> None:
        super().__init__(message)


class PersistenceError(InboxPlacementError):
    """Raised when the test record store is unavailable or a write fails."""

    def __init__(self, message: str = "Test store error") -> None:
        super().__init__(message)


class EngineError(InboxPlacementError):
    """Raised for unexpected failures during a test pass."""

    def __init__(self, message: str = "Engine error") -> None:
        super().__init__(message)


class InvalidTransitionError(EngineError):
    """Raised when a status change is not allowed by the test state machine.

    Attributes:
        current: The status the test was in.
        target: The status that was requested.
    """

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move test from {current} to {target}")


class TestVanishedError(EngineError):
    """Raised when a test record disappears from the store mid-run."""

    __test__ = False

    def __init__(self, test_id: str) -> None:
        self.test_id = test_id
        super().__init__(f"Test {test_id} not found in store")
