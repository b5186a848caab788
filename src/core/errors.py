"""Exception hierarchy shared by the connection emulator and its collaborators."""

from __future__ import annotations


class SQLFakeError(Exception):
    """Base class for every error raised by the emulator stack."""


class ProcessorError(SQLFakeError):
    """Raised by a command processor when a statement cannot be executed."""

    def __init__(self, message: str, *, location: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    @property
    def classification(self) -> str:
        """Label reported as `error_type` when the failure is logged."""

        return type(self).__name__


class SQLParseError(ProcessorError):
    """The statement is malformed or uses unsupported syntax."""


class SQLRuntimeError(ProcessorError):
    """The statement parsed but failed against the backend state."""


class UsageError(SQLFakeError, TypeError):
    """A caller violated a precondition of the client surface."""


class ConnectionClosedError(UsageError):
    """A query was issued on a connection after `close()`."""
