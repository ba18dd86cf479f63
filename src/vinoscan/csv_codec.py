"""
CSV import and export for the cellar inventory.

Import runs in two stages so each can be tested on its own:

1. ``tokenize`` is a two-state machine (UNQUOTED / QUOTED) that turns text
   into TEXT, FIELD_END and ROW_END tokens.
2. ``parse_rows`` assembles tokens into rows of stripped cells.

The dialect is deliberately minimal: every double quote toggles quoting and
is dropped, so ``""`` inside a quoted cell does not produce a literal quote.
Export mirrors it by wrapping each field in quotes without escaping.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, NamedTuple, Optional

from vinoscan.config import EXPORT_FILENAME
from vinoscan.constants import ColumnNames, Defaults, WineType
from vinoscan.error_handling import CsvImportError
from vinoscan.schema import WineEntry
from vinoscan.utils import new_entry_id, now_ms

logger = logging.getLogger(__name__)


# =======================
# TOKENIZER
# =======================

class TokenKind(Enum):
    TEXT = "text"
    FIELD_END = "field_end"
    ROW_END = "row_end"


class Token(NamedTuple):
    kind: TokenKind
    value: str = ""


class _State(Enum):
    UNQUOTED = "unquoted"
    QUOTED = "quoted"


FIELD_END = Token(TokenKind.FIELD_END)
ROW_END = Token(TokenKind.ROW_END)


def tokenize(text: str) -> Iterator[Token]:
    """
    Yield CSV tokens from ``text``.

    Consecutive content characters are merged into one TEXT token. A ``\\r\\n``
    pair outside quotes is a single ROW_END; inside quotes, separators and
    line breaks are plain content.
    """
    state = _State.UNQUOTED
    buffer: List[str] = []
    i = 0
    length = len(text)

    while i < length:
        char = text[i]
        if char == '"':
            state = _State.QUOTED if state is _State.UNQUOTED else _State.UNQUOTED
        elif state is _State.QUOTED:
            buffer.append(char)
        elif char == ',':
            if buffer:
                yield Token(TokenKind.TEXT, "".join(buffer))
                buffer = []
            yield FIELD_END
        elif char in '\r\n':
            if buffer:
                yield Token(TokenKind.TEXT, "".join(buffer))
                buffer = []
            yield ROW_END
            if char == '\r' and i + 1 < length and text[i + 1] == '\n':
                i += 1
        else:
            buffer.append(char)
        i += 1

    if buffer:
        yield Token(TokenKind.TEXT, "".join(buffer))


def parse_rows(text: str) -> List[List[str]]:
    """
    Parse CSV text into rows of cells.

    Cells are stripped of surrounding whitespace. A line break with nothing
    pending (no cell content, no cells yet) does not produce a row, which
    drops blank lines and trailing newlines.
    """
    rows: List[List[str]] = []
    row: List[str] = []
    cell = ""

    for token in tokenize(text):
        if token.kind is TokenKind.TEXT:
            cell += token.value
        elif token.kind is TokenKind.FIELD_END:
            row.append(cell.strip())
            cell = ""
        elif cell or row:
            row.append(cell.strip())
            rows.append(row)
            row = []
            cell = ""

    if cell or row:
        row.append(cell.strip())
        rows.append(row)

    return rows


# =======================
# IMPORT
# =======================

def _resolve_columns(header: List[str]) -> dict:
    """Map each entry field to its column index (or None) using the aliases."""
    lowered = [h.lower() for h in header]
    columns = {}
    for field in ColumnNames.import_fields():
        aliases = ColumnNames.ALIASES[field]
        columns[field] = next((i for i, h in enumerate(lowered) if h in aliases), None)
    return columns


def _cell(row: List[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index]


def import_entries(
    text: str,
    start_ms: Optional[int] = None,
    id_factory: Callable[[], str] = new_entry_id,
) -> List[WineEntry]:
    """
    Parse an inventory CSV into new catalog entries.

    Args:
        text: Full CSV document; the first row is the header
        start_ms: Import start time, defaults to now
        id_factory: Generator for entry ids

    Returns:
        Entries in file order. ``created_at`` is ``start_ms + row_index`` so
        creation order matches file order.

    Raises:
        CsvImportError: If there is no header plus at least one data row
    """
    rows = parse_rows(text)
    if len(rows) < 2:
        raise CsvImportError("CSV is empty or missing headers.")

    start_ms = now_ms() if start_ms is None else start_ms
    columns = _resolve_columns(rows[0])
    missing = [field for field, index in columns.items() if index is None]
    if missing:
        logger.debug(f"CSV columns not found, using defaults: {missing}")

    entries = []
    for row_index in range(1, len(rows)):
        row = rows[row_index]
        if not row or (len(row) == 1 and not row[0]):
            continue

        value = {field: _cell(row, index) for field, index in columns.items()}
        entries.append(WineEntry(
            id=id_factory(),
            image_urls=(),
            name=value["name"] or Defaults.IMPORTED_NAME,
            maker=value["maker"] or Defaults.IMPORTED_MAKER,
            year=value["year"],
            wine_type=WineType.coerce(value["type"], Defaults.IMPORTED_TYPE),
            price=value["price"],
            description="",
            bin_number=value["bin_number"],
            notes=value["notes"],
            custom_fields=(),
            created_at=start_ms + row_index,
        ))

    logger.info(f"Parsed {len(entries)} entries from {len(rows) - 1} CSV data rows")
    return entries


# =======================
# EXPORT
# =======================

def _export_row(entry: WineEntry) -> List[str]:
    return [
        entry.name,
        entry.maker,
        entry.year,
        entry.wine_type.value,
        entry.price,
        entry.bin_number,
        entry.notes,
    ]


def export_csv(entries: Iterable[WineEntry]) -> str:
    """
    Serialize active entries as CSV text.

    Trashed entries are skipped. Each field is wrapped in double quotes with
    no escaping; rows are joined with ``\\n``.
    """
    lines = [",".join(ColumnNames.EXPORT_HEADERS)]
    for entry in entries:
        if entry.is_trashed:
            continue
        lines.append(",".join(f'"{v}"' for v in _export_row(entry)))
    return "\n".join(lines)


def write_csv(entries: Iterable[WineEntry], path: Optional[Path] = None) -> Path:
    """Write ``export_csv`` output to ``path`` (default ``cellar_inventory.csv``)."""
    path = Path(path) if path is not None else Path(EXPORT_FILENAME)
    content = export_csv(entries)
    path.write_text(content, encoding="utf-8")
    logger.info(f"Exported {content.count(chr(10))} entries to {path}")
    return path
