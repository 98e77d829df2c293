"""Exception types shared by the CLI and the workflows."""

from __future__ import annotations


class TextCheckError(Exception):
    """Base class for textcheck errors."""


class ConfigurationError(TextCheckError, ValueError):
    """Invalid or missing run configuration; fatal before any network activity."""


class ExhaustedRetriesError(TextCheckError):
    """An identifier failed on every allowed attempt."""

    def __init__(self, identifier: str, attempts: int, last_error: str) -> None:
        super().__init__(last_error)
        self.identifier = identifier
        self.attempts = attempts
        self.last_error = last_error


class UnexpectedWorkerFault(TextCheckError):
    """Anything other than a fetch failure raised while processing one identifier."""

    def __init__(self, identifier: str, cause: BaseException) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.identifier = identifier
        self.cause = cause
