"""
Word Table Renderer Module
Builds Word tables from summary table bodies and applies table-level styling
operations: column bold/italic, row indentation, spanning header rows,
horizontal rules and numbered footnotes.

Operations mirror a pipeline style: kable() creates a DocxTable, and every
styling method returns the same DocxTable so calls can be chained.

Cell text is written literally by default (escape=True). With escape=False,
inline markup is rendered as formatted runs:
    ***text***  → bold italic
    **text**    → bold
    *text*      → italic
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd
from docx import Document
from docx.document import Document as DocxDocument
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor


logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# STYLE CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TableStyle:
    """Word table styling constants"""

    # ── Colors ──────────────────────────────────────────────────────────────
    TEXT_COLOR: RGBColor = RGBColor(0, 0, 0)
    NOTE_COLOR: RGBColor = RGBColor(64, 64, 64)
    RULE_HEX: str = "000000"
    SPANNER_RULE_HEX: str = "808080"

    # ── Fonts ───────────────────────────────────────────────────────────────
    FONT: str = "Calibri"
    EAST_ASIAN_FONT: str = "Malgun Gothic"
    CAPTION_FONT: str = "Arial"

    # ── Sizes ───────────────────────────────────────────────────────────────
    HEADER_SIZE: Pt = Pt(10)
    BODY_SIZE: Pt = Pt(10)
    NOTE_SIZE: Pt = Pt(8.5)
    CAPTION_SIZE: Pt = Pt(10.5)

    # ── Rules (eighths of a point) ──────────────────────────────────────────
    OUTER_RULE_SIZE: str = "12"
    INNER_RULE_SIZE: str = "6"

    # ── Indent ──────────────────────────────────────────────────────────────
    INDENT_STEP: Inches = Inches(0.25)

    # ── Word style ──────────────────────────────────────────────────────────
    STYLE_TABLE: str = "Table Grid"


# Singleton style instance
STYLE = TableStyle()

_ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "l": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "c": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "r": WD_ALIGN_PARAGRAPH.RIGHT,
}


# ═══════════════════════════════════════════════════════════════════════════════
# FONT / TABLE STYLERS
# ═══════════════════════════════════════════════════════════════════════════════


class FontStyler:
    """Handles run styling including East Asian fonts"""

    @staticmethod
    def set_east_asian_font(element, font_name: str = STYLE.EAST_ASIAN_FONT):
        """Set East Asian font on a run element"""
        rPr = element._element.get_or_add_rPr()
        if rPr.rFonts is None:
            rPr.get_or_add_rFonts()
        rPr.rFonts.set(qn("w:eastAsia"), font_name)

    @staticmethod
    def apply_run_style(
        run,
        font_name: Optional[str] = None,
        font_size: Optional[Pt] = None,
        bold: Optional[bool] = None,
        italic: Optional[bool] = None,
        color: Optional[RGBColor] = None,
        superscript: Optional[bool] = None,
    ):
        """Apply styling to a run"""
        if font_name:
            run.font.name = font_name
        if font_size:
            run.font.size = font_size
        if bold is not None:
            run.font.bold = bold
        if italic is not None:
            run.font.italic = italic
        if color:
            run.font.color.rgb = color
        if superscript is not None:
            run.font.superscript = superscript
        FontStyler.set_east_asian_font(run)


class TableStyler:
    """Handles table borders"""

    @staticmethod
    def set_table_borders(table):
        """Top and bottom rules only, no vertical lines"""
        tbl = table._tbl
        tblPr = tbl.tblPr if tbl.tblPr is not None else OxmlElement("w:tblPr")
        tblBorders = OxmlElement("w:tblBorders")

        for border_name in ("top", "left", "bottom", "right", "insideH", "insideV"):
            border = OxmlElement(f"w:{border_name}")
            if border_name in ("top", "bottom"):
                border.set(qn("w:val"), "single")
                border.set(qn("w:sz"), STYLE.OUTER_RULE_SIZE)
                border.set(qn("w:color"), STYLE.RULE_HEX)
            else:
                border.set(qn("w:val"), "nil")
            tblBorders.append(border)

        tblPr.append(tblBorders)
        if tbl.tblPr is None:
            tbl.insert(0, tblPr)

    @staticmethod
    def set_cell_border(cell, edge: str, size: str, color_hex: str):
        """Set one border edge (top/bottom/left/right) on a cell"""
        tcPr = cell._tc.get_or_add_tcPr()
        tcBorders = tcPr.find(qn("w:tcBorders"))
        if tcBorders is None:
            tcBorders = OxmlElement("w:tcBorders")
            tcPr.append(tcBorders)

        existing = tcBorders.find(qn(f"w:{edge}"))
        if existing is not None:
            tcBorders.remove(existing)

        border = OxmlElement(f"w:{edge}")
        border.set(qn("w:val"), "single")
        border.set(qn("w:sz"), size)
        border.set(qn("w:color"), color_hex)
        tcBorders.append(border)


# ═══════════════════════════════════════════════════════════════════════════════
# TEXT RENDERER
# ═══════════════════════════════════════════════════════════════════════════════


class TextRenderer:
    """Renders cell text as runs"""

    # Compiled once at class level
    _MARKUP_SPLIT_RE = re.compile(r"(\*\*\*.+?\*\*\*|\*\*.+?\*\*|\*.+?\*)")

    @staticmethod
    def render_text(
        paragraph,
        text: str,
        escape: bool = True,
        font_name: Optional[str] = None,
        font_size: Optional[Pt] = None,
    ):
        """Render text to a paragraph, parsing markup when escape is False"""
        font_name = font_name or STYLE.FONT
        font_size = font_size or STYLE.BODY_SIZE

        if escape:
            if text:
                run = paragraph.add_run(text)
                FontStyler.apply_run_style(run, font_name=font_name, font_size=font_size)
            return

        for part, bold, italic in TextRenderer.split_markup(text):
            run = paragraph.add_run(part)
            FontStyler.apply_run_style(
                run,
                font_name=font_name,
                font_size=font_size,
                bold=bold or None,
                italic=italic or None,
            )

    @staticmethod
    def split_markup(text: str) -> List[tuple]:
        """Split text into (text, bold, italic) parts"""
        parts = []
        for part in TextRenderer._MARKUP_SPLIT_RE.split(text):
            if not part:
                continue
            if part.startswith("***") and part.endswith("***") and len(part) > 6:
                parts.append((part[3:-3], True, True))
            elif part.startswith("**") and part.endswith("**") and len(part) > 4:
                parts.append((part[2:-2], True, False))
            elif part.startswith("*") and part.endswith("*") and len(part) > 2:
                parts.append((part[1:-1], False, True))
            else:
                parts.append((part, False, False))
        return parts


def cell_spec(value, bold: bool = False, italic: bool = False):
    """Wrap a cell value in bold/italic markup (rendered with escape=False)"""
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        return value
    text = str(value)
    if not text:
        return text
    if bold and italic:
        return f"***{text}***"
    if bold:
        return f"**{text}**"
    if italic:
        return f"*{text}*"
    return text


def _cell_text(value) -> str:
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        return ""
    return str(value)


# ═══════════════════════════════════════════════════════════════════════════════
# DOCX TABLE
# ═══════════════════════════════════════════════════════════════════════════════


class DocxTable:
    """A Word table plus the document holding it"""

    def __init__(
        self,
        doc: DocxDocument,
        table,
        n_body_rows: int,
        escape: bool = True,
        font_name: Optional[str] = None,
        font_size: Optional[Pt] = None,
    ):
        self.doc = doc
        self.table = table
        self.n_body_rows = n_body_rows
        self.n_header_rows = 1
        self.escape = escape
        self.font_name = font_name or STYLE.FONT
        self.font_size = font_size or STYLE.BODY_SIZE
        self.footnotes: List[str] = []

    @property
    def n_columns(self) -> int:
        return len(self.table.columns)

    def body_row(self, row_number: int):
        """Word row for a 1-based body row number"""
        if not 1 <= row_number <= self.n_body_rows:
            raise ValueError(
                f"Row {row_number} is outside the table body (1..{self.n_body_rows})"
            )
        return self.table.rows[self.n_header_rows + row_number - 1]

    # ── column_spec ─────────────────────────────────────────────────────────

    def column_spec(
        self,
        column: int,
        bold: Union[None, bool, Sequence[bool]] = None,
        italic: Union[None, bool, Sequence[bool]] = None,
    ) -> "DocxTable":
        """
        Bold/italicise a column's body cells.

        Args:
            column: 1-based visible column id
            bold: True/False for every row, or a per-row mask
            italic: True/False for every row, or a per-row mask
        """
        if not 1 <= column <= self.n_columns:
            raise ValueError(f"Column {column} is outside the table (1..{self.n_columns})")

        bold_mask = self._expand_mask(bold)
        italic_mask = self._expand_mask(italic)

        for r in range(1, self.n_body_rows + 1):
            cell = self.body_row(r).cells[column - 1]
            for paragraph in cell.paragraphs:
                for run in paragraph.runs:
                    if bold_mask is not None and bold_mask[r - 1]:
                        run.font.bold = True
                    if italic_mask is not None and italic_mask[r - 1]:
                        run.font.italic = True
        return self

    def _expand_mask(self, value) -> Optional[List[bool]]:
        if value is None:
            return None
        if isinstance(value, bool):
            return [value] * self.n_body_rows
        mask = [bool(v) for v in value]
        if len(mask) != self.n_body_rows:
            raise ValueError(
                f"Mask has length {len(mask)}, table body has {self.n_body_rows} rows"
            )
        return mask

    # ── add_indent ──────────────────────────────────────────────────────────

    def add_indent(self, positions: Sequence[int], level_of_indent: int = 1) -> "DocxTable":
        """Indent the first-column cells of the given 1-based body rows"""
        for position in positions:
            cell = self.body_row(int(position)).cells[0]
            for paragraph in cell.paragraphs:
                paragraph.paragraph_format.left_indent = STYLE.INDENT_STEP * level_of_indent
        return self

    # ── add_header_above ────────────────────────────────────────────────────

    def add_header_above(self, header: Sequence[tuple]) -> "DocxTable":
        """
        Insert a spanning header row above the current header rows.

        Args:
            header: (label, width) pairs, left to right; widths must add up
                to the number of columns
        """
        total = sum(int(width) for _, width in header)
        if total != self.n_columns:
            raise ValueError(
                f"Spanning header widths add up to {total}, table has {self.n_columns} columns"
            )

        new_row = self.table.add_row()
        tr = new_row._tr
        tr.getparent().remove(tr)
        self.table.rows[0]._tr.addprevious(tr)
        self.n_header_rows += 1

        start = 0
        for label, width in header:
            width = int(width)
            cell = self.table.cell(0, start)
            if width > 1:
                cell = cell.merge(self.table.cell(0, start + width - 1))

            paragraph = cell.paragraphs[0]
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            text = str(label).strip()
            if text:
                TextRenderer.render_text(
                    paragraph,
                    text,
                    escape=self.escape,
                    font_name=self.font_name,
                    font_size=STYLE.HEADER_SIZE,
                )
                TableStyler.set_cell_border(
                    cell, "bottom", STYLE.INNER_RULE_SIZE, STYLE.SPANNER_RULE_HEX
                )
            start += width
        return self

    # ── row_spec ────────────────────────────────────────────────────────────

    def row_spec(
        self,
        row: Union[int, Sequence[int]],
        hline_after: bool = False,
        bold: Optional[bool] = None,
        italic: Optional[bool] = None,
    ) -> "DocxTable":
        """
        Style whole rows.

        Args:
            row: Row index or indices; 0 is the last header row, body rows are 1-based
            hline_after: Draw a rule below the row
            bold: Bold every run in the row
            italic: Italicise every run in the row
        """
        rows = [row] if isinstance(row, int) else list(row)
        for r in rows:
            r = int(r)
            word_row = self.table.rows[self.n_header_rows - 1] if r == 0 else self.body_row(r)
            for cell in word_row.cells:
                if hline_after:
                    TableStyler.set_cell_border(
                        cell, "bottom", STYLE.INNER_RULE_SIZE, STYLE.RULE_HEX
                    )
                for paragraph in cell.paragraphs:
                    for run in paragraph.runs:
                        if bold is not None:
                            run.font.bold = bold
                        if italic is not None:
                            run.font.italic = italic
        return self

    # ── footnote ────────────────────────────────────────────────────────────

    def footnote(self, number: Sequence[str]) -> "DocxTable":
        """Add numbered footnotes below the table"""
        for text in number:
            self.footnotes.append(str(text))
            num = len(self.footnotes)

            p = self.doc.add_paragraph()
            p.paragraph_format.space_after = Pt(0)

            num_run = p.add_run(str(num))
            FontStyler.apply_run_style(
                num_run,
                font_name=self.font_name,
                font_size=STYLE.NOTE_SIZE,
                color=STYLE.NOTE_COLOR,
                superscript=True,
            )

            p.add_run(" ")
            text_run = p.add_run(str(text))
            FontStyler.apply_run_style(
                text_run,
                font_name=self.font_name,
                font_size=STYLE.NOTE_SIZE,
                color=STYLE.NOTE_COLOR,
            )
        return self

    # ── output ──────────────────────────────────────────────────────────────

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        self.doc.save(str(path))
        return path

    def to_rows(self) -> List[List[str]]:
        """Plain text of every row, header rows first"""
        return [[cell.text for cell in row.cells] for row in self.table.rows]


# ═══════════════════════════════════════════════════════════════════════════════
# TABLE CREATION
# ═══════════════════════════════════════════════════════════════════════════════


def kable(
    body: pd.DataFrame,
    columns: Sequence[str],
    col_names: Optional[Sequence[str]] = None,
    align: Optional[Sequence[str]] = None,
    caption: Optional[str] = None,
    footnote_marks: Sequence = (),
    escape: bool = True,
    font_name: Optional[str] = None,
    font_size: Optional[float] = None,
    table_style: Optional[str] = None,
    doc: Optional[DocxDocument] = None,
) -> DocxTable:
    """
    Create a Word table from a table body.

    Args:
        body: Table body; missing values render as empty cells
        columns: Body columns to show, in order
        col_names: Header labels (defaults to the column names)
        align: Per-column alignment (left/center/right)
        caption: Caption paragraph placed above the table
        footnote_marks: Marks with ``column``, ``row`` (None for the header)
            and ``number`` attributes, rendered as superscripts
        escape: Write text literally; False renders inline markup
        font_name: Body font
        font_size: Body font size in points
        table_style: Word table style name
        doc: Document to append to (a new one is created if omitted)

    Returns:
        The DocxTable
    """
    columns = list(columns)
    col_names = list(col_names) if col_names is not None else list(columns)
    if len(col_names) != len(columns):
        raise ValueError(
            f"Got {len(col_names)} column names for {len(columns)} columns"
        )
    align = _expand_align(align, len(columns))

    doc = doc if doc is not None else Document()
    size = Pt(font_size) if font_size else STYLE.BODY_SIZE
    name = font_name or STYLE.FONT

    if caption:
        caption_para = doc.add_paragraph()
        caption_run = caption_para.add_run(caption)
        FontStyler.apply_run_style(
            caption_run, font_name=STYLE.CAPTION_FONT, font_size=STYLE.CAPTION_SIZE, bold=True
        )

    n_rows = len(body.index)
    word_table = doc.add_table(rows=n_rows + 1, cols=len(columns))
    word_table.style = table_style or STYLE.STYLE_TABLE
    word_table.alignment = WD_TABLE_ALIGNMENT.CENTER

    header_marks = {}
    cell_marks = {}
    for mark in footnote_marks:
        target = header_marks if mark.row is None else cell_marks
        key = mark.column if mark.row is None else (mark.column, mark.row)
        target.setdefault(key, []).append(mark.number)

    # ── Header row ──────────────────────────────────────────────────────────
    for c_idx, (column, label) in enumerate(zip(columns, col_names)):
        cell = word_table.rows[0].cells[c_idx]
        p = cell.paragraphs[0]
        p.alignment = _ALIGNMENTS.get(align[c_idx], WD_ALIGN_PARAGRAPH.CENTER)
        TextRenderer.render_text(p, str(label), escape=escape, font_name=name, font_size=STYLE.HEADER_SIZE)
        _add_marks(p, header_marks.get(column, []), name)
        TableStyler.set_cell_border(cell, "bottom", STYLE.INNER_RULE_SIZE, STYLE.RULE_HEX)

    # ── Body rows ───────────────────────────────────────────────────────────
    for r_idx in range(n_rows):
        word_cells = word_table.rows[r_idx + 1].cells
        for c_idx, column in enumerate(columns):
            p = word_cells[c_idx].paragraphs[0]
            p.alignment = _ALIGNMENTS.get(align[c_idx], WD_ALIGN_PARAGRAPH.CENTER)
            text = _cell_text(body[column].iloc[r_idx])
            TextRenderer.render_text(p, text, escape=escape, font_name=name, font_size=size)
            _add_marks(p, cell_marks.get((column, r_idx + 1), []), name)

    TableStyler.set_table_borders(word_table)
    logger.debug("Created %d x %d Word table", n_rows, len(columns))

    return DocxTable(doc, word_table, n_rows, escape=escape, font_name=name, font_size=size)


def _expand_align(align, n_columns: int) -> List[str]:
    """Per-column alignments; a single value applies to every column, "lcc" is split"""
    if align is None:
        return ["left"] + ["center"] * (n_columns - 1)

    align = [align] if isinstance(align, str) else list(align)
    if len(align) == 1 and align[0] not in _ALIGNMENTS:
        align = list(align[0])
    if len(align) == 1:
        return align * n_columns
    if len(align) != n_columns:
        raise ValueError(f"Got {len(align)} alignments for {n_columns} columns")
    return align


def _add_marks(paragraph, numbers: List[int], font_name: str):
    if not numbers:
        return
    run = paragraph.add_run(",".join(str(n) for n in sorted(set(numbers))))
    FontStyler.apply_run_style(run, font_name=font_name, font_size=STYLE.NOTE_SIZE, superscript=True)
