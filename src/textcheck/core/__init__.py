"""Core schema helpers for textcheck."""

from .keys import *  # noqa: F401,F403 re-export stable keys
from .errors import (
    ConfigurationError,
    ExhaustedRetriesError,
    TextCheckError,
    UnexpectedWorkerFault,
)

__all__ = [name for name in globals() if name.startswith("K_")] + [
    "OUTPUT_COLUMNS",
    "ConfigurationError",
    "ExhaustedRetriesError",
    "TextCheckError",
    "UnexpectedWorkerFault",
]
