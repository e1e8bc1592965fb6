"""
Summary Table to Word Table Converter
Main entry point: as_docx_table() turns a SummaryTable into a styled Word
table (docx_table.DocxTable).

Pipeline:
    1. Check the rendering dependency (python-docx)
    2. Run the theme's pre-conversion hook
    3. Resolve row specifications (clean_table_styling)
    4. Strip markdown bold markers from header labels
    5. Build the directive list (directives.table_styling_to_docx_calls)
    6. Splice in the theme's added directives
    7. Keep the directives picked by ``include`` ("tibble" is always kept)
    8. Fold the directives into one pipeline and run it

Usage:
    from summary_table import load_summary_table
    from table_converter import as_docx_table

    table = as_docx_table(load_summary_table("table.yaml"))
    table.save("table.docx")
"""

import importlib.util
import logging
from dataclasses import replace
from functools import partial, reduce
from typing import Any, Callable, List, Optional, Sequence

import pandas as pd

from directives import (
    DIRECTIVE_ORDER,
    Directive,
    DirectiveList,
    DirectiveType,
    UserArgs,
    table_styling_to_docx_calls,
)
from selection import NameSelector, select_names
from summary_table import SummaryTable, clean_table_styling
from summary_table import strip_md_bold as strip_bold_markers
from theme import ThemeConfig


logger = logging.getLogger(__name__)


# Import name → distribution name
_DISTRIBUTIONS = {"docx": "python-docx"}

BODY_DIRECTIVE = "tibble"


class MissingDependencyError(ImportError):
    """Raised when an optional rendering dependency is not installed"""


def require_package(module_name: str, fn_name: str):
    """
    Fail fast if a module cannot be imported.

    Raises:
        MissingDependencyError: If the module is not installed
    """
    if importlib.util.find_spec(module_name) is None:
        dist = _DISTRIBUTIONS.get(module_name, module_name)
        raise MissingDependencyError(
            f"The '{dist}' package is required for {fn_name}. "
            f"Install it with: pip install {dist}"
        )


# ═══════════════════════════════════════════════════════════════════════════════
# PIPELINE ASSEMBLY
# ═══════════════════════════════════════════════════════════════════════════════


def _fallback_anchor(add_after: str, names: List[str]) -> str:
    """Nearest present directive preceding ``add_after`` in canonical order"""
    if add_after in DIRECTIVE_ORDER:
        preceding = DIRECTIVE_ORDER[: DIRECTIVE_ORDER.index(add_after)]
        for name in reversed(preceding):
            if name in names:
                return name
        return names[0]
    return names[-1]


def add_directive_after(
    calls: DirectiveList,
    add_after: str,
    directives: Sequence[Directive],
    new_name: str,
) -> DirectiveList:
    """
    Insert a new named directive group after ``add_after``.

    If ``add_after`` is not part of this directive list, the group goes after
    the nearest directive that precedes it in the canonical order.

    Returns:
        A new directive list
    """
    if new_name in calls:
        raise ValueError(f"Directive '{new_name}' already exists")

    names = list(calls)
    anchor = add_after if add_after in calls else _fallback_anchor(add_after, names)
    if anchor != add_after:
        logger.debug("Anchor '%s' not present; inserting '%s' after '%s'", add_after, new_name, anchor)

    spliced: DirectiveList = {}
    for name, group in calls.items():
        spliced[name] = group
        if name == anchor:
            spliced[new_name] = list(directives)
    return spliced


def filter_calls(calls: DirectiveList, include: NameSelector = None) -> DirectiveList:
    """Keep the selected directives in directive-list order; the body is always kept"""
    chosen = set(select_names(include, list(calls)))
    chosen.add(BODY_DIRECTIVE)
    return {name: group for name, group in calls.items() if name in chosen}


# ═══════════════════════════════════════════════════════════════════════════════
# EVALUATION
# ═══════════════════════════════════════════════════════════════════════════════


class DirectiveInterpreter:
    """Applies directives to the render state (DataFrame, then DocxTable)"""

    def __init__(self):
        import docx_table

        self._kable = docx_table.kable
        self._cell_spec = docx_table.cell_spec

    def apply(self, directive: Directive, state: Any) -> Any:
        """Apply one directive and return the new state"""
        dtype = directive.directive_type
        args = directive.args

        if dtype == DirectiveType.BUILD_BODY:
            return args.table_body[list(args.columns)].copy()

        elif dtype == DirectiveType.FORMAT_MISSING:
            body = state.copy()
            col_idx = body.columns.get_loc(args.column)
            for row in args.row_numbers:
                if pd.isna(body.iat[row - 1, col_idx]):
                    body.iat[row - 1, col_idx] = args.symbol
            return body

        elif dtype == DirectiveType.CELL_SPEC:
            body = state.copy()
            wanted = set(args.row_numbers)
            body[args.column] = [
                self._cell_spec(value, bold=args.bold, italic=args.italic)
                if pos + 1 in wanted
                else value
                for pos, value in enumerate(body[args.column])
            ]
            return body

        elif dtype == DirectiveType.KABLE:
            return self._kable(
                state,
                columns=args.columns,
                col_names=args.col_names,
                align=args.align,
                caption=args.caption,
                footnote_marks=args.footnote_marks,
                **args.options,
            )

        elif dtype == DirectiveType.COLUMN_SPEC:
            return state.column_spec(args.column, bold=args.bold, italic=args.italic)

        elif dtype == DirectiveType.INDENT:
            return state.add_indent(args.row_numbers, level_of_indent=args.level_of_indent)

        elif dtype == DirectiveType.HEADER_ABOVE:
            return state.add_header_above(args.header)

        elif dtype == DirectiveType.ROW_SPEC:
            return state.row_spec(args.rows, hline_after=args.hline_after)

        elif dtype == DirectiveType.FOOTNOTE:
            return state.footnote(args.number)

        elif dtype == DirectiveType.USER:
            return args.func(state)

        raise ValueError(f"Unhandled directive type: {dtype}")


def flatten_calls(calls: DirectiveList) -> List[Directive]:
    """Directives in execution order, skipping empty groups"""
    return [d for group in calls.values() if group for d in group if d is not None]


def compose_pipeline(
    directives: Sequence[Directive], interpreter: DirectiveInterpreter
) -> Callable[[Any], Any]:
    """Fold directives left to right into one callable"""
    steps = [partial(interpreter.apply, d) for d in directives]
    if not steps:
        raise ValueError("No directives to evaluate")
    return reduce(lambda f, g: lambda state: g(f(state)), steps)


def evaluate_directives(calls: DirectiveList):
    """Run every directive in order and return the final render state"""
    directives = flatten_calls(calls)
    logger.debug("Evaluating %d directives", len(directives))
    pipeline = compose_pipeline(directives, DirectiveInterpreter())
    return pipeline(None)


# ═══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════════


def as_docx_table(
    x: SummaryTable,
    include: NameSelector = None,
    return_calls: bool = False,
    strip_md_bold: bool = True,
    fmt_missing: bool = True,
    config: Optional[ThemeConfig] = None,
    **kwargs,
):
    """
    Convert a summary table to a Word table.

    Args:
        x: The summary table
        include: Selector for the directives to run (default: all);
            "tibble" always runs
        return_calls: Return the directive list instead of running it
        strip_md_bold: Remove "**" from header and spanning header labels
        fmt_missing: Apply missing-value symbols
        config: Theme configuration (pre-conversion hook, added
            directives, table-creation defaults)
        **kwargs: Passed to table creation (escape, caption, align,
            font_name, font_size, table_style, doc)

    Returns:
        docx_table.DocxTable, or the directive list when return_calls is True

    Raises:
        MissingDependencyError: If python-docx is not installed
    """
    require_package("docx", "as_docx_table()")

    config = config or ThemeConfig()

    if config.pre_conversion is not None:
        x = config.pre_conversion(x)

    x = clean_table_styling(x)

    if strip_md_bold:
        x = replace(x, table_styling=strip_bold_markers(x.table_styling))

    kable_kwargs = {**config.kable_defaults, **kwargs}
    calls = table_styling_to_docx_calls(x, fmt_missing=fmt_missing, **kable_kwargs)

    for idx, added in enumerate(config.addl_cmds, 1):
        calls = add_directive_after(
            calls,
            add_after=added.after,
            directives=[Directive(DirectiveType.USER, UserArgs(func=added.func, label=added.label))],
            new_name=f"user_added{idx}",
        )

    calls = filter_calls(calls, include)

    if return_calls:
        return calls

    return evaluate_directives(calls)
