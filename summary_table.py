"""
Summary Table Module
Data model for summary tables: the table body plus the styling records that
describe how it should be rendered (column headers, spanning headers, text
formats, missing-value symbols, footnotes and horizontal rules).

Also handles:
    - Loading summary tables from YAML/JSON files
    - Resolving row specifications into 1-based row numbers
    - Stripping markdown bold markers from header labels
    - Assigning visible column ids
    - Numbering footnotes

Dependencies:
    Required: pandas, pyyaml
"""

import copy
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd
import yaml


logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════════

MD_BOLD_MARKER = "**"

# Column holding the row labels; indentation only applies here
LABEL_COLUMN = "label"

# A row specification: pandas expression, mask-producing callable,
# explicit 1-based row numbers, or None for "every row"
RowSpec = Union[None, str, Callable[[pd.DataFrame], Any], Sequence[int]]


class SummaryTableError(ValueError):
    """Raised when a summary table definition is malformed"""


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════


class FormatType(Enum):
    """Cell text formats"""

    BOLD = "bold"
    ITALIC = "italic"
    INDENT = "indent"
    INDENT2 = "indent2"


# ═══════════════════════════════════════════════════════════════════════════════
# DATA MODELS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class ColumnHeader:
    """Header metadata for one body column"""

    column: str
    label: str = ""
    hide: bool = False
    spanning_header: Optional[str] = None
    align: str = "center"  # left, center, right
    id: Optional[int] = None  # visible id, assigned only to non-hidden columns


@dataclass
class TextFormat:
    """Bold/italic/indent formatting for a set of rows in one column"""

    format_type: FormatType
    column: str
    rows: RowSpec = None
    row_numbers: List[int] = field(default_factory=list)


@dataclass
class MissingFormat:
    """Symbol to show in place of missing values"""

    column: str
    rows: RowSpec = None
    symbol: str = ""
    row_numbers: List[int] = field(default_factory=list)


@dataclass
class FootnoteSpec:
    """A footnote attached to a column header (rows=None) or to body cells"""

    column: str
    footnote: Optional[str]
    rows: RowSpec = None
    row_numbers: Optional[List[int]] = None


@dataclass
class NumberedFootnote:
    """A footnote placed on a header (row_number=None) or body cell"""

    column: str
    row_number: Optional[int]
    footnote: str
    footnote_id: int


@dataclass
class TableStyling:
    """How the table body should be rendered"""

    header: List[ColumnHeader] = field(default_factory=list)
    text_format: List[TextFormat] = field(default_factory=list)
    fmt_missing: List[MissingFormat] = field(default_factory=list)
    footnote: List[FootnoteSpec] = field(default_factory=list)
    horizontal_line_above: RowSpec = None
    caption: Optional[str] = None

    def visible_headers(self) -> List[ColumnHeader]:
        """Headers of non-hidden columns, in display order"""
        return [h for h in self.header if not h.hide]


@dataclass
class SummaryTable:
    """A table body together with its styling"""

    table_body: pd.DataFrame
    table_styling: TableStyling = field(default_factory=TableStyling)

    @property
    def n_rows(self) -> int:
        return len(self.table_body.index)


# ═══════════════════════════════════════════════════════════════════════════════
# ROW RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════════


def resolve_row_numbers(spec: RowSpec, table_body: pd.DataFrame) -> List[int]:
    """
    Resolve a row specification into 1-based row numbers.

    Args:
        spec: None (every row), pandas expression string, callable returning a
            boolean mask, or explicit row numbers
        table_body: The body the row numbers refer to

    Returns:
        Sorted 1-based row numbers
    """
    n_rows = len(table_body.index)

    if spec is None:
        return list(range(1, n_rows + 1))

    if isinstance(spec, str):
        mask = table_body.eval(spec, engine="python")
        return _mask_to_row_numbers(mask, n_rows)

    if callable(spec):
        return _mask_to_row_numbers(spec(table_body), n_rows)

    return sorted({int(row) for row in spec})


def _mask_to_row_numbers(mask, n_rows: int) -> List[int]:
    """Convert a boolean mask into 1-based positions (missing counts as False)"""
    if pd.api.types.is_scalar(mask):
        return list(range(1, n_rows + 1)) if mask else []

    values = pd.Series(list(mask), dtype="object")
    if len(values) != n_rows:
        raise SummaryTableError(
            f"Row mask has length {len(values)}, expected {n_rows}"
        )
    flags = values.where(values.notna(), False).astype(bool)
    return [pos + 1 for pos, flag in enumerate(flags) if flag]


def clean_table_styling(x: SummaryTable) -> SummaryTable:
    """
    Resolve every row specification into row numbers and drop stale records.

    Text-format and missing-value records that select no rows are dropped.
    Footnotes are last-wins per header column and per body cell; a footnote
    of None removes any earlier footnote at that position.

    Returns:
        A new SummaryTable; the input is left untouched
    """
    body = x.table_body
    styling = copy.deepcopy(x.table_styling)

    text_format = []
    for fmt in styling.text_format:
        fmt.row_numbers = resolve_row_numbers(fmt.rows, body)
        if fmt.row_numbers:
            text_format.append(fmt)

    fmt_missing = []
    for miss in styling.fmt_missing:
        miss.row_numbers = resolve_row_numbers(miss.rows, body)
        if miss.row_numbers:
            fmt_missing.append(miss)

    # (column, row) -> footnote, row None for the header
    placed: Dict[Tuple[str, Optional[int]], Optional[str]] = {}
    for note in styling.footnote:
        if note.rows is None:
            placed.pop((note.column, None), None)
            placed[(note.column, None)] = note.footnote
            continue
        for row in resolve_row_numbers(note.rows, body):
            placed.pop((note.column, row), None)
            placed[(note.column, row)] = note.footnote

    footnotes = []
    for (column, row), text in placed.items():
        if text is None:
            continue
        footnotes.append(
            FootnoteSpec(
                column=column,
                footnote=text,
                rows=None if row is None else [row],
                row_numbers=None if row is None else [row],
            )
        )

    styling.text_format = text_format
    styling.fmt_missing = fmt_missing
    styling.footnote = footnotes

    logger.debug(
        "Cleaned styling: %d text formats, %d missing formats, %d footnotes",
        len(text_format),
        len(fmt_missing),
        len(footnotes),
    )
    return SummaryTable(table_body=body, table_styling=styling)


# ═══════════════════════════════════════════════════════════════════════════════
# NORMALIZATION
# ═══════════════════════════════════════════════════════════════════════════════


def strip_md_bold(styling: TableStyling, marker: str = MD_BOLD_MARKER) -> TableStyling:
    """Remove the markdown bold marker from header and spanning header labels"""
    header = [
        replace(
            h,
            label=h.label.replace(marker, ""),
            spanning_header=(
                None if h.spanning_header is None else h.spanning_header.replace(marker, "")
            ),
        )
        for h in styling.header
    ]
    return replace(styling, header=header)


def assign_column_ids(header: List[ColumnHeader]) -> List[ColumnHeader]:
    """Number the visible columns 1..k in display order; hidden columns get None"""
    assigned = []
    next_id = 1
    for h in header:
        if h.hide:
            assigned.append(replace(h, id=None))
        else:
            assigned.append(replace(h, id=next_id))
            next_id += 1
    return assigned


def number_footnotes(x: SummaryTable) -> List[NumberedFootnote]:
    """
    Number the footnotes of visible columns.

    Header footnotes come first in column display order, followed by body
    cell footnotes ordered by column then row. Identical texts share a
    number, assigned by first occurrence.
    """
    positions = {h.column: i for i, h in enumerate(x.table_styling.visible_headers())}

    header_notes = []
    body_notes = []
    for note in x.table_styling.footnote:
        if note.footnote is None or note.column not in positions:
            continue
        if note.row_numbers is None:
            header_notes.append((positions[note.column], 0, note.column, None, note.footnote))
        else:
            for row in note.row_numbers:
                body_notes.append((positions[note.column], row, note.column, row, note.footnote))

    header_notes.sort(key=lambda item: item[0])
    body_notes.sort(key=lambda item: (item[0], item[1]))

    ids: Dict[str, int] = {}
    numbered = []
    for _, _, column, row, text in header_notes + body_notes:
        if text not in ids:
            ids[text] = len(ids) + 1
        numbered.append(
            NumberedFootnote(column=column, row_number=row, footnote=text, footnote_id=ids[text])
        )
    return numbered


# ═══════════════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════════════


def _require_list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise SummaryTableError(f"'{key}' must be a list, got {type(value).__name__}")
    return value


def _require_mapping(item: Any, key: str) -> Dict[str, Any]:
    if not isinstance(item, dict):
        raise SummaryTableError(f"Entries of '{key}' must be mappings, got {item!r}")
    return item


def _parse_header(entries: List[Any], body_columns: List[str]) -> List[ColumnHeader]:
    header = []
    seen = set()
    for item in entries:
        item = _require_mapping(item, "header")
        if "column" not in item:
            raise SummaryTableError(f"Header entry without 'column': {item!r}")
        column = str(item["column"])
        spanning = item.get("spanning_header")
        header.append(
            ColumnHeader(
                column=column,
                label=str(item.get("label", column)),
                hide=bool(item.get("hide", False)),
                spanning_header=None if spanning is None else str(spanning),
                align=str(item.get("align", "left" if column == LABEL_COLUMN else "center")),
            )
        )
        seen.add(column)

    # Body columns without header metadata are carried along hidden
    for column in body_columns:
        if column not in seen:
            header.append(ColumnHeader(column=column, label=column, hide=True))
    return header


def summary_table_from_dict(data: Dict[str, Any]) -> SummaryTable:
    """
    Build a SummaryTable from a plain mapping (as loaded from YAML/JSON).

    Raises:
        SummaryTableError: If a section is missing or has the wrong shape
    """
    if not isinstance(data, dict):
        raise SummaryTableError("Summary table definition must be a mapping")

    rows = _require_list(data, "table_body")
    rows = [_require_mapping(row, "table_body") for row in rows]
    body = pd.DataFrame.from_records(rows) if rows else pd.DataFrame()
    body = body.astype(object)

    header = _parse_header(_require_list(data, "header"), [str(c) for c in body.columns])
    missing = [h.column for h in header if h.column not in body.columns]
    if missing:
        raise SummaryTableError(f"Header columns not in table_body: {', '.join(missing)}")
    body = body[[h.column for h in header]]

    text_format = []
    for item in _require_list(data, "text_format"):
        item = _require_mapping(item, "text_format")
        try:
            format_type = FormatType(item.get("format_type"))
        except ValueError:
            raise SummaryTableError(f"Unknown format_type: {item.get('format_type')!r}") from None
        if "column" not in item:
            raise SummaryTableError(f"text_format entry without 'column': {item!r}")
        text_format.append(
            TextFormat(format_type=format_type, column=str(item["column"]), rows=item.get("rows"))
        )

    fmt_missing = [
        MissingFormat(
            column=str(item["column"]),
            rows=item.get("rows"),
            symbol=str(item.get("symbol", "")),
        )
        for item in (_require_mapping(i, "fmt_missing") for i in _require_list(data, "fmt_missing"))
    ]

    footnotes = [
        FootnoteSpec(
            column=str(item["column"]),
            footnote=item.get("footnote"),
            rows=item.get("rows"),
        )
        for item in (_require_mapping(i, "footnote") for i in _require_list(data, "footnote"))
    ]

    styling = TableStyling(
        header=header,
        text_format=text_format,
        fmt_missing=fmt_missing,
        footnote=footnotes,
        horizontal_line_above=data.get("horizontal_line_above"),
        caption=data.get("caption"),
    )
    return SummaryTable(table_body=body, table_styling=styling)


def load_summary_table(file_path: Union[str, Path]) -> SummaryTable:
    """
    Load a summary table from a YAML or JSON file.

    Args:
        file_path: Path to the definition file

    Returns:
        The parsed SummaryTable
    """
    path = Path(file_path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    table = summary_table_from_dict(data)
    logger.debug(
        "Loaded %s: %d rows, %d columns",
        path.name,
        table.n_rows,
        len(table.table_styling.header),
    )
    return table
