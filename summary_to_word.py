"""
Summary Table to Word Converter
Command-line entry point for converting YAML/JSON summary tables to Word tables.

Usage:
    python summary_to_word.py table.yaml [output.docx]
    python summary_to_word.py table.yaml --calls             # Print directives, don't render
    python summary_to_word.py table.yaml --exclude footnote  # Skip footnotes
    python summary_to_word.py table.yaml --no-escape         # Render **bold** markup in cells
    python summary_to_word.py table.yaml --theme theme.yaml  # Apply a YAML theme
"""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import Optional

import yaml

from directives import describe_calls
from selection import select_names
from summary_table import SummaryTableError, load_summary_table
from table_converter import MissingDependencyError, as_docx_table
from theme import ThemeConfig, ThemeError, load_theme


# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════════

OUTPUT_SUFFIX = "_table.docx"

# Logger
logger = logging.getLogger("summary_to_word")

# Module loggers shown with --verbose
LIBRARY_LOGGERS = ("summary_table", "directives", "docx_table", "table_converter", "theme")


# ═══════════════════════════════════════════════════════════════════════════════
# LOGGING SETUP
# ═══════════════════════════════════════════════════════════════════════════════


class LogFormatter(logging.Formatter):
    """Custom log formatter with level-based prefixes"""

    PREFIXES = {
        logging.DEBUG: "[DEBUG]",
        logging.INFO: "[INFO]",
        logging.WARNING: "[WARNING]",
        logging.ERROR: "[ERROR]",
        logging.CRITICAL: "[CRITICAL]",
    }

    def format(self, record: logging.LogRecord) -> str:
        prefix = self.PREFIXES.get(record.levelno, "[LOG]")
        return f"{prefix} {record.getMessage()}"


def setup_logging(verbose: bool = False):
    """Configure logging for the converter (and its modules when verbose)"""
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(LogFormatter())

    names = ["summary_to_word"] + (list(LIBRARY_LOGGERS) if verbose else [])
    for name in names:
        named = logging.getLogger(name)
        named.setLevel(level)
        named.handlers.clear()
        named.addHandler(handler)
        named.propagate = False


# ═══════════════════════════════════════════════════════════════════════════════
# PATHS
# ═══════════════════════════════════════════════════════════════════════════════


def generate_output_path(input_path: Path, output_path: Optional[str] = None) -> Path:
    """
    Generate output file path.

    Args:
        input_path: Input definition file path
        output_path: User-specified output path (optional)

    Returns:
        Output Path for the .docx file
    """
    if output_path:
        out = Path(output_path)
        if out.suffix.lower() != ".docx":
            out = out.with_suffix(".docx")
        return out

    output_name = f"{input_path.stem}{OUTPUT_SUFFIX}".replace(" ", "_")
    return input_path.parent / output_name


def safe_save(table, output_path: Path) -> Path:
    """
    Save the table's document, handling permission errors gracefully.

    If the target file is locked (e.g. open in Word), saves with a
    timestamp suffix instead.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        table.save(output_path)
        logger.info("Saved: %s", output_path)
        return output_path

    except PermissionError:
        logger.warning(
            "%s is locked (possibly open in another program). Saving with timestamp suffix.",
            output_path.name,
        )
        timestamp = int(time.time())
        new_path = output_path.with_name(f"{output_path.stem}_{timestamp}{output_path.suffix}")
        table.save(new_path)
        logger.info("Saved: %s", new_path)
        return new_path


# ═══════════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════════


def build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser"""
    parser = argparse.ArgumentParser(
        description="Convert summary tables (YAML/JSON) to Word tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python summary_to_word.py table.yaml                      # Writes table_table.docx
    python summary_to_word.py table.yaml out.docx --calls     # Show directives only
    python summary_to_word.py table.yaml --include "add_*"    # Body plus indentation/headers
    python summary_to_word.py table.yaml --theme theme.yaml   # Theme defaults
        """,
    )

    parser.add_argument("input_file", help="Summary table definition (.yaml/.yml/.json)")
    parser.add_argument(
        "output_file",
        nargs="?",
        help="Output Word document path (optional, auto-generated if omitted)",
    )

    # Directive selection
    select_group = parser.add_argument_group("directive selection")
    select_group.add_argument(
        "--include",
        nargs="+",
        metavar="NAME",
        help="Directives to run (names or glob patterns); tibble always runs",
    )
    select_group.add_argument(
        "--exclude",
        nargs="+",
        metavar="NAME",
        help="Directives to skip (names or glob patterns)",
    )
    select_group.add_argument(
        "--calls",
        action="store_true",
        help="Print the directive list as YAML instead of rendering",
    )

    # Rendering options
    render_group = parser.add_argument_group("rendering options")
    render_group.add_argument(
        "--no-strip-md-bold",
        action="store_true",
        help="Keep ** markers in header labels",
    )
    render_group.add_argument(
        "--no-fmt-missing",
        action="store_true",
        help="Do not substitute missing-value symbols",
    )
    render_group.add_argument(
        "--no-escape",
        action="store_true",
        help="Render inline **bold**/*italic* markup instead of literal text",
    )
    render_group.add_argument("--caption", help="Table caption")
    render_group.add_argument("--theme", help="YAML theme file")

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) output",
    )

    return parser


def build_selector(include, excluded):
    """Combine --include and --exclude into one selector"""
    if not excluded:
        return include

    def _select(names):
        dropped = set(select_names(excluded, names))
        return [n for n in select_names(include, names) if n not in dropped]

    return _select


def run_conversion(args) -> int:
    """
    Execute the conversion.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    input_path = Path(args.input_file).resolve()
    if not input_path.is_file():
        logger.error("Input file not found: %s", input_path)
        return 1

    start_time = time.perf_counter()

    try:
        config = load_theme(args.theme) if args.theme else ThemeConfig()

        logger.info("Loading: %s", input_path.name)
        summary = load_summary_table(input_path)
        logger.info(
            "Loaded %d rows, %d columns",
            summary.n_rows,
            len(summary.table_styling.visible_headers()),
        )

        kwargs = {}
        if args.no_escape:
            kwargs["escape"] = False
        if args.caption:
            kwargs["caption"] = args.caption

        result = as_docx_table(
            summary,
            include=build_selector(args.include, args.exclude),
            return_calls=args.calls,
            strip_md_bold=not args.no_strip_md_bold,
            fmt_missing=not args.no_fmt_missing,
            config=config,
            **kwargs,
        )

        if args.calls:
            print(yaml.safe_dump(describe_calls(result), sort_keys=False, allow_unicode=True))
            return 0

        output_path = generate_output_path(input_path, args.output_file)
        saved_path = safe_save(result, output_path)

    except MissingDependencyError as e:
        logger.error("%s", e)
        return 1

    except (SummaryTableError, ThemeError) as e:
        logger.error("%s", e)
        return 1

    except Exception as e:
        logger.error("Conversion failed: %s", e)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    elapsed = time.perf_counter() - start_time
    logger.info("Conversion completed in %.2fs", elapsed)

    print(f"\n{'=' * 65}")
    print("  Conversion complete!")
    print(f"  Input:  {input_path}")
    print(f"  Output: {saved_path}")
    print(f"{'=' * 65}\n")
    return 0


def main(argv=None):
    """Main entry point with CLI argument parsing"""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose)
    sys.exit(run_conversion(args))


if __name__ == "__main__":
    main()
