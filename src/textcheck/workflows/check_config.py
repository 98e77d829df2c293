"""Run defaults (headers, pacing, retries, output) and the validated RunConfig.

Centralizes static defaults so the workflow modules carry no magic numbers.
Every default can be overridden through a ``TEXTCHECK_*`` environment
variable (a ``.env`` file is honoured by the CLI) and then by explicit
command-line options.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from ..core.errors import ConfigurationError
from ..core.keys import K_LABEL_MATCH

# Headers
USER_AGENT = "check-text/1.0 (+contacto@tusitio.com)"


def _env_int(name: str, default: int) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name, "")
    return raw.strip() or default


def default_concurrency() -> int:
    return _env_int("TEXTCHECK_CONCURRENCY", 2)


def default_requests_per_second() -> float:
    return _env_float("TEXTCHECK_RPS", 0.5)


def default_min_jitter_ms() -> int:
    return _env_int("TEXTCHECK_MIN_JITTER_MS", 1000)


def default_max_retries() -> int:
    return _env_int("TEXTCHECK_RETRIES", 2)


def default_timeout_ms() -> int:
    return _env_int("TEXTCHECK_TIMEOUT_MS", 15000)


def default_backoff_ms() -> int:
    return _env_int("TEXTCHECK_BACKOFF_MS", 400)


def default_output_path() -> Path:
    return Path(_env_str("TEXTCHECK_OUTFILE", "resultados.csv"))


def default_user_agent() -> str:
    return _env_str("TEXTCHECK_USER_AGENT", USER_AGENT)


PROGRESS_EVERY = 100


@dataclass(frozen=True, slots=True)
class FragmentRule:
    """Designated tag plus the attribute signature that identifies it."""

    tag: str = "h3"
    attribute: str = "class"
    value: str = "mb-1 text-center"

    @classmethod
    def parse(cls, tag: str, signature: str) -> "FragmentRule":
        """Build a rule from ``tag`` and an ``attr=value`` signature."""

        tag = (tag or "").strip().lower()
        if not tag or not tag.isalnum():
            raise ConfigurationError(f"Invalid fragment tag: {tag!r}")
        name, sep, value = (signature or "").partition("=")
        name = name.strip().lower()
        value = value.strip().strip("\"'")
        if not sep or not name or not value:
            raise ConfigurationError(f"Fragment attribute must look like name=value, got {signature!r}")
        return cls(tag=tag, attribute=name, value=value)

    @property
    def signature(self) -> str:
        return f"{self.attribute}={self.value}"


DEFAULT_FRAGMENT_RULE = FragmentRule()


def build_url(base_url: str, identifier: str) -> str:
    """Join an identifier onto the base URL: ``<base without trailing />=<id>``."""

    return f"{base_url.rstrip('/')}={identifier}"


@dataclass(frozen=True, slots=True)
class RunConfig:
    base_url: str
    expected_marker: str
    output_path: Path = field(default_factory=default_output_path)
    concurrency: int = field(default_factory=default_concurrency)
    requests_per_second: float = field(default_factory=default_requests_per_second)
    min_jitter_ms: int = field(default_factory=default_min_jitter_ms)
    max_retries: int = field(default_factory=default_max_retries)
    timeout_ms: int = field(default_factory=default_timeout_ms)
    base_backoff_ms: int = field(default_factory=default_backoff_ms)
    user_agent: str = field(default_factory=default_user_agent)
    fragment_rule: FragmentRule = DEFAULT_FRAGMENT_RULE
    match_label: str = K_LABEL_MATCH
    progress_every: int = PROGRESS_EVERY

    def __post_init__(self) -> None:
        problems = self.validate()
        if problems:
            raise ConfigurationError("; ".join(problems))

    def validate(self) -> Tuple[str, ...]:
        problems = []
        if not (self.base_url or "").strip():
            problems.append("base URL is required")
        if not self.expected_marker:
            problems.append("marker text is required")
        if self.concurrency < 1:
            problems.append(f"concurrency must be >= 1 (got {self.concurrency})")
        if not self.requests_per_second > 0:
            problems.append(f"requests per second must be > 0 (got {self.requests_per_second})")
        if self.min_jitter_ms < 0:
            problems.append(f"min jitter must be >= 0 ms (got {self.min_jitter_ms})")
        if self.max_retries < 0:
            problems.append(f"retries must be >= 0 (got {self.max_retries})")
        if self.timeout_ms <= 0:
            problems.append(f"timeout must be > 0 ms (got {self.timeout_ms})")
        if self.base_backoff_ms < 0:
            problems.append(f"backoff must be >= 0 ms (got {self.base_backoff_ms})")
        if not (self.match_label or "").strip():
            problems.append("match label must not be empty")
        if self.progress_every < 1:
            problems.append(f"progress interval must be >= 1 (got {self.progress_every})")
        return tuple(problems)

    def url_for(self, identifier: str) -> str:
        return build_url(self.base_url, identifier)

    def describe(self, input_path: Optional[Path] = None) -> str:
        lines = []
        if input_path is not None:
            lines.append(f" File: {input_path}")
        lines.extend(
            [
                f" Base: {self.base_url.rstrip('/')}",
                f" Marker: \"{self.expected_marker}\"",
                f" Fragment: <{self.fragment_rule.tag} {self.fragment_rule.signature}>",
                f" Concurrency: {self.concurrency}",
                f" RPS: {self.requests_per_second}",
                f" Min jitter: {self.min_jitter_ms}ms",
                f" Retries: {self.max_retries} (backoff {self.base_backoff_ms}ms)",
                f" Timeout: {self.timeout_ms}ms",
                f" Output: {self.output_path}",
            ]
        )
        return "\n".join(lines)
