"""Append-only CSV persistence for per-identifier results."""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, TextIO

from ..core.keys import K_LABEL_ERROR, OUTPUT_COLUMNS

logger = logging.getLogger(__name__)

HEADER_LINE = ",".join(OUTPUT_COLUMNS) + "\n"


@dataclass(frozen=True)
class ResultRecord:
    """Terminal outcome for one identifier; written exactly once."""

    identifier: str
    url: str
    status: Optional[int]
    elapsed_ms: Optional[int]
    label: str
    detail: str

    @property
    def is_error(self) -> bool:
        return self.label == K_LABEL_ERROR


def _single_line(value: str) -> str:
    return " ".join((value or "").splitlines())


def format_record(record: ResultRecord) -> str:
    """Render one record as a CSV line.

    Text fields are always quoted and embedded quotes are doubled. Status and
    time are bare integers, or ``""`` when there is no response.
    """

    row: List[object] = [
        record.identifier,
        record.url,
        record.status if record.status is not None else "",
        record.elapsed_ms if record.elapsed_ms is not None else "",
        record.label,
        _single_line(record.detail),
    ]
    buf = io.StringIO()
    csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n").writerow(row)
    return buf.getvalue()


class CsvResultSink:
    """Serialized appender for ``ResultRecord`` rows.

    The header is written only when the destination is new (missing or
    empty); otherwise records are appended after whatever a previous run left.
    Each record is written and flushed in a single call under a lock.
    """

    def __init__(self, output_path: Path) -> None:
        self.output_path = Path(output_path)
        self._lock = asyncio.Lock()
        self._fh: Optional[TextIO] = None
        self.written = 0

    def open(self) -> "CsvResultSink":
        if self._fh is not None:
            return self
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        is_new = not self.output_path.exists() or self.output_path.stat().st_size == 0
        self._fh = self.output_path.open("a", encoding="utf-8", newline="")
        if is_new:
            self._fh.write(HEADER_LINE)
            self._fh.flush()
        else:
            logger.info("appending to existing results file %s", self.output_path)
        return self

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    async def __aenter__(self) -> "CsvResultSink":
        return self.open()

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    async def append(self, record: ResultRecord) -> None:
        line = format_record(record)
        async with self._lock:
            if self._fh is None:
                raise RuntimeError(f"result sink for {self.output_path} is not open")
            self._fh.write(line)
            self._fh.flush()
            self.written += 1
