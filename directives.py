"""
Directive Builder Module
Translates a summary table's styling into an ordered list of render
directives for the Word table renderer (docx_table).

Each directive names one operation (build the body, create the table,
mark cells bold, indent rows, add spanning headers, draw rules, attach
footnotes) together with its arguments. Directives are plain data; the
converter (table_converter) interprets them in order.

Directive list layout (insertion ordered):
    tibble            → body construction (always first)
    fmt_missing       → missing-value symbols (optional)
    bold_italic       → cell markup rewrites (escape=False only)
    kable             → create the Word table
    bold_italic       → column bold/italic masks (escape=True only)
    add_indent        → first-level indentation
    add_indent2       → second-level indentation
    add_header_above  → spanning header row
    horizontal_line   → rules between rows
    footnote          → numbered footnotes
"""

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pandas as pd

from summary_table import (
    LABEL_COLUMN,
    ColumnHeader,
    FormatType,
    SummaryTable,
    assign_column_ids,
    number_footnotes,
    resolve_row_numbers,
)


logger = logging.getLogger(__name__)


# Placeholder label for visible columns outside any spanning header
BLANK_SPANNING_HEADER = " "

# Canonical directive order; user directives are anchored against these names
DIRECTIVE_ORDER = (
    "tibble",
    "fmt_missing",
    "kable",
    "bold_italic",
    "add_indent",
    "add_indent2",
    "add_header_above",
    "horizontal_line",
    "footnote",
)


# ═══════════════════════════════════════════════════════════════════════════════
# DIRECTIVE TYPES
# ═══════════════════════════════════════════════════════════════════════════════


class DirectiveType(Enum):
    """Operations understood by the directive interpreter"""

    BUILD_BODY = "tibble"
    FORMAT_MISSING = "fmt_missing"
    KABLE = "kable"
    COLUMN_SPEC = "column_spec"
    CELL_SPEC = "cell_spec"
    INDENT = "add_indent"
    HEADER_ABOVE = "add_header_above"
    ROW_SPEC = "row_spec"
    FOOTNOTE = "footnote"
    USER = "user"


class _Args:
    """Base for directive arguments"""

    def describe(self) -> Dict[str, Any]:
        """Plain-data view of the arguments"""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class BodyArgs(_Args):
    """Start from a copy of the table body"""

    table_body: pd.DataFrame
    columns: List[str]

    def describe(self) -> Dict[str, Any]:
        return {"columns": list(self.columns), "n_rows": len(self.table_body.index)}


@dataclass
class MissingArgs(_Args):
    """Replace missing values in one column's rows"""

    column: str
    row_numbers: List[int]
    symbol: str


@dataclass
class FootnoteMark:
    """Superscript footnote number on a header (row=None) or body cell"""

    column: str
    row: Optional[int]
    number: int


@dataclass
class KableArgs(_Args):
    """Create the Word table from the body"""

    columns: List[str]
    col_names: List[str]
    align: List[str]
    caption: Optional[str] = None
    footnote_marks: List[FootnoteMark] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> Dict[str, Any]:
        return {
            "columns": list(self.columns),
            "col_names": list(self.col_names),
            "align": list(self.align),
            "caption": self.caption,
            "footnote_marks": [
                {"column": m.column, "row": m.row, "number": m.number}
                for m in self.footnote_marks
            ],
            "options": {
                k: v
                for k, v in self.options.items()
                if isinstance(v, (str, int, float, bool, type(None)))
            },
        }


@dataclass
class ColumnSpecArgs(_Args):
    """Bold or italicise a visible column at the masked rows"""

    column: int
    bold: Optional[List[bool]] = None
    italic: Optional[List[bool]] = None


@dataclass
class CellSpecArgs(_Args):
    """Rewrite raw cell values into bold/italic markup"""

    column: str
    row_numbers: List[int]
    bold: bool = False
    italic: bool = False


@dataclass
class IndentArgs(_Args):
    row_numbers: List[int]
    level_of_indent: int = 1


@dataclass
class HeaderAboveArgs(_Args):
    """Spanning header groups, left to right; labels may repeat"""

    header: List[Tuple[str, int]]

    def describe(self) -> Dict[str, Any]:
        return {"header": [[label, width] for label, width in self.header]}


@dataclass
class RowSpecArgs(_Args):
    """Row 0 is the last header row; body rows are 1-based"""

    rows: List[int]
    hline_after: bool = True


@dataclass
class FootnoteArgs(_Args):
    number: List[str]


@dataclass
class UserArgs(_Args):
    """Arbitrary callable applied to the current render state"""

    func: Callable[[Any], Any]
    label: str = ""

    def describe(self) -> Dict[str, Any]:
        name = self.label or getattr(self.func, "__name__", repr(self.func))
        return {"func": name}


DirectiveArgs = Union[
    BodyArgs,
    MissingArgs,
    KableArgs,
    ColumnSpecArgs,
    CellSpecArgs,
    IndentArgs,
    HeaderAboveArgs,
    RowSpecArgs,
    FootnoteArgs,
    UserArgs,
]


@dataclass
class Directive:
    """One render operation"""

    directive_type: DirectiveType
    args: DirectiveArgs

    def describe(self) -> Dict[str, Any]:
        return {"type": self.directive_type.value, **self.args.describe()}


DirectiveList = Dict[str, List[Directive]]


def describe_calls(calls: DirectiveList) -> Dict[str, List[Dict[str, Any]]]:
    """YAML-safe view of a directive list"""
    return {name: [d.describe() for d in directives] for name, directives in calls.items()}


# ═══════════════════════════════════════════════════════════════════════════════
# BASE DIRECTIVES
# ═══════════════════════════════════════════════════════════════════════════════


def _footnote_marks(x: SummaryTable) -> List[FootnoteMark]:
    return [
        FootnoteMark(column=n.column, row=n.row_number, number=n.footnote_id)
        for n in number_footnotes(x)
    ]


def table_styling_to_base_calls(
    x: SummaryTable, fmt_missing: bool = False, **kable_kwargs
) -> DirectiveList:
    """
    Build the body, missing-value and table-creation directives.

    Args:
        x: Summary table with resolved row numbers
        fmt_missing: Whether to emit missing-value directives
        **kable_kwargs: Passed verbatim to the table-creation directive

    Returns:
        Ordered directive list with "tibble", optionally "fmt_missing", and "kable"
    """
    styling = x.table_styling
    visible = styling.visible_headers()

    calls: DirectiveList = {}
    calls["tibble"] = [
        Directive(
            DirectiveType.BUILD_BODY,
            BodyArgs(table_body=x.table_body, columns=[h.column for h in styling.header]),
        )
    ]

    if fmt_missing:
        calls["fmt_missing"] = [
            Directive(
                DirectiveType.FORMAT_MISSING,
                MissingArgs(column=m.column, row_numbers=list(m.row_numbers), symbol=m.symbol),
            )
            for m in styling.fmt_missing
        ]

    options = dict(kable_kwargs)
    caption = options.pop("caption", styling.caption)
    align = options.pop("align", None) or [h.align for h in visible]
    if isinstance(align, str):
        align = [align]

    calls["kable"] = [
        Directive(
            DirectiveType.KABLE,
            KableArgs(
                columns=[h.column for h in visible],
                col_names=[h.label for h in visible],
                align=list(align),
                caption=caption,
                footnote_marks=_footnote_marks(x),
                options=options,
            ),
        )
    ]
    return calls


# ═══════════════════════════════════════════════════════════════════════════════
# STYLE OVERLAYS
# ═══════════════════════════════════════════════════════════════════════════════


def spanning_header_groups(header: List[ColumnHeader]) -> List[Tuple[str, int]]:
    """
    Group adjacent visible columns that share a spanning header label.

    Columns without a spanning header get a blank placeholder label. Equal
    labels that are not adjacent stay separate groups.
    """
    labels = [
        BLANK_SPANNING_HEADER if h.spanning_header is None else h.spanning_header
        for h in header
        if not h.hide
    ]

    groups: List[List[Any]] = []
    for label in labels:
        if groups and groups[-1][0] == label:
            groups[-1][1] += 1
        else:
            groups.append([label, 1])
    return [(label, width) for label, width in groups]


def _add_bold_italic_calls(
    calls: DirectiveList, x: SummaryTable, header: List[ColumnHeader], escape: bool
) -> DirectiveList:
    ids = {h.column: h.id for h in header}
    records = []
    for fmt in x.table_styling.text_format:
        if fmt.format_type not in (FormatType.BOLD, FormatType.ITALIC):
            continue
        if ids.get(fmt.column) is None:
            logger.debug("Skipping %s on hidden/unknown column %s", fmt.format_type.value, fmt.column)
            continue
        records.append(fmt)

    if not records:
        return calls

    # escape=True: mark whole columns through row masks on the rendered table
    if escape:
        n_rows = x.n_rows
        bold_calls = []
        italic_calls = []
        for fmt in records:
            column_id = ids[fmt.column]
            wanted = set(fmt.row_numbers)
            mask = [row in wanted for row in range(1, n_rows + 1)]
            if fmt.format_type is FormatType.BOLD:
                bold_calls.append(
                    Directive(DirectiveType.COLUMN_SPEC, ColumnSpecArgs(column=column_id, bold=mask))
                )
            else:
                italic_calls.append(
                    Directive(DirectiveType.COLUMN_SPEC, ColumnSpecArgs(column=column_id, italic=mask))
                )
        calls["bold_italic"] = bold_calls + italic_calls
        return calls

    # escape=False: rewrite the raw cells before the table is created
    flags: Dict[Tuple[str, int], Dict[str, bool]] = {}
    for fmt in records:
        if fmt.format_type is not FormatType.BOLD:
            continue
        for row in fmt.row_numbers:
            flags.setdefault((fmt.column, row), {"bold": False, "italic": False})["bold"] = True
    for fmt in records:
        if fmt.format_type is not FormatType.ITALIC:
            continue
        for row in fmt.row_numbers:
            flags.setdefault((fmt.column, row), {"bold": False, "italic": False})["italic"] = True

    grouped: Dict[Tuple[str, bool, bool], List[int]] = {}
    for (column, row), flag in flags.items():
        grouped.setdefault((column, flag["bold"], flag["italic"]), []).append(row)

    markup_calls = [
        Directive(
            DirectiveType.CELL_SPEC,
            CellSpecArgs(column=column, row_numbers=sorted(rows), bold=bold, italic=italic),
        )
        for (column, bold, italic), rows in grouped.items()
    ]
    if not markup_calls:
        return calls

    reordered: DirectiveList = {}
    for name, directives in calls.items():
        if name == "kable":
            reordered["bold_italic"] = markup_calls
        reordered[name] = directives
    return reordered


def _indent_rows(x: SummaryTable, format_type: FormatType) -> List[int]:
    rows = set()
    for fmt in x.table_styling.text_format:
        if fmt.format_type is format_type and fmt.column == LABEL_COLUMN:
            rows.update(fmt.row_numbers)
    return sorted(rows)


def table_styling_to_docx_calls(
    x: SummaryTable, fmt_missing: bool = False, **kable_kwargs
) -> DirectiveList:
    """
    Build the full directive list for a summary table.

    Args:
        x: Summary table with resolved row numbers (see clean_table_styling)
        fmt_missing: Whether to emit missing-value directives
        **kable_kwargs: Passed verbatim to the table-creation directive;
            ``escape`` (default True) picks how bold/italic is applied

    Returns:
        Ordered directive list
    """
    calls = table_styling_to_base_calls(x, fmt_missing=fmt_missing, **kable_kwargs)
    header = assign_column_ids(x.table_styling.header)
    escape = kable_kwargs.get("escape", True)

    # ── bold / italic ───────────────────────────────────────────────────────
    calls = _add_bold_italic_calls(calls, x, header, escape=bool(escape))

    # ── indentation ─────────────────────────────────────────────────────────
    indent = _indent_rows(x, FormatType.INDENT)
    if indent:
        calls["add_indent"] = [
            Directive(DirectiveType.INDENT, IndentArgs(row_numbers=indent))
        ]

    indent2 = _indent_rows(x, FormatType.INDENT2)
    if indent2:
        calls["add_indent2"] = [
            Directive(DirectiveType.INDENT, IndentArgs(row_numbers=indent2, level_of_indent=2))
        ]

    # ── spanning headers ────────────────────────────────────────────────────
    if any(h.spanning_header is not None for h in header):
        calls["add_header_above"] = [
            Directive(
                DirectiveType.HEADER_ABOVE,
                HeaderAboveArgs(header=spanning_header_groups(header)),
            )
        ]

    # ── horizontal rules ────────────────────────────────────────────────────
    rule = x.table_styling.horizontal_line_above
    if rule is not None:
        # a rule above body row N is drawn after row N-1 (row 0 = header)
        above = resolve_row_numbers(rule, x.table_body)
        calls["horizontal_line"] = [
            Directive(
                DirectiveType.ROW_SPEC,
                RowSpecArgs(rows=[row - 1 for row in above], hline_after=True),
            )
        ]

    # ── footnotes ───────────────────────────────────────────────────────────
    texts: List[str] = []
    for note in number_footnotes(x):
        if note.footnote not in texts:
            texts.append(note.footnote)
    if texts:
        calls["footnote"] = [Directive(DirectiveType.FOOTNOTE, FootnoteArgs(number=texts))]

    logger.debug(
        "Built %d directive groups: %s",
        len(calls),
        ", ".join(f"{name}({len(ds)})" for name, ds in calls.items()),
    )
    return calls
