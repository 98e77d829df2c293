"""Identifier loading from spreadsheets or line-delimited text files."""

from __future__ import annotations

import logging
import re
import zipfile
from pathlib import Path
from typing import Iterable, List, Optional, Union

import pandas as pd

from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm"}
LEGACY_SPREADSHEET_SUFFIXES = {".xls"}
_COLUMN_RE = re.compile(r"^[A-Za-z]{1,3}$")


def parse_lines(lines: Iterable[str]) -> List[str]:
    """One identifier per line; surrounding whitespace trimmed, blank lines skipped."""

    ids: List[str] = []
    for raw_line in lines:
        line = raw_line.strip()
        if line:
            ids.append(line)
    return ids


def _cell_text(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_sheet_column(
    path: Path,
    column: str = "A",
    sheet: Optional[Union[str, int]] = None,
) -> List[str]:
    """Read ``column`` of a sheet from row 1 down, stopping at the first empty cell.

    Cells holding only whitespace are skipped without ending the scan.
    """

    column = (column or "A").strip().upper()
    if not _COLUMN_RE.match(column):
        raise ConfigurationError(f"Invalid column selector: {column!r}")
    try:
        frame = pd.read_excel(
            path,
            sheet_name=sheet if sheet is not None else 0,
            header=None,
            usecols=column,
            dtype=object,
        )
    except ValueError as exc:
        raise ConfigurationError(f"Cannot read column {column} from {path}: {exc}") from exc
    except (ImportError, zipfile.BadZipFile, OSError) as exc:
        raise ConfigurationError(f"Cannot open spreadsheet {path}: {exc}") from exc
    ids: List[str] = []
    if frame.empty:
        return ids
    for value in frame.iloc[:, 0].tolist():
        if value is None or pd.isna(value):
            break
        text = _cell_text(value)
        if text:
            ids.append(text)
    return ids


def load_identifiers(
    path: Union[str, Path],
    column: str = "A",
    sheet: Optional[Union[str, int]] = None,
) -> List[str]:
    """Load identifiers from a spreadsheet column or a one-per-line text file."""

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Input file not found: {path}")
    suffix = path.suffix.lower()
    if suffix in LEGACY_SPREADSHEET_SUFFIXES:
        raise ConfigurationError(f"Legacy {suffix} workbooks are not supported, save {path} as .xlsx")
    if suffix in SPREADSHEET_SUFFIXES:
        ids = read_sheet_column(path, column=column, sheet=sheet)
    else:
        try:
            text = path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ConfigurationError(f"Input file {path} is not valid UTF-8: {exc}") from exc
        except OSError as exc:
            raise ConfigurationError(f"Cannot read input file {path}: {exc}") from exc
        ids = parse_lines(text.splitlines())
    logger.info("%d IDs loaded from %s", len(ids), path)
    return ids
