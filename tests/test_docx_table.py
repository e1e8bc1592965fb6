"""
Tests for docx_table module.

Tests Word table rendering including:
- Table creation (header, body, caption, footnote marks)
- Inline markup parsing
- Column bold/italic, indentation, rules
- Spanning header rows
- Footnotes below the table
"""

import pandas as pd
import pytest
from docx.oxml.ns import qn
from docx.shared import Inches

from directives import FootnoteMark
from docx_table import STYLE, TextRenderer, cell_spec, kable


@pytest.fixture
def body():
    return pd.DataFrame(
        {
            "label": ["Age", "Unknown", "Grade"],
            "stat_1": ["46 (37, 59)", "7", None],
            "stat_2": ["48 (39, 56)", None, None],
        },
        dtype=object,
    )


@pytest.fixture
def table(body):
    return kable(
        body,
        columns=["label", "stat_1", "stat_2"],
        col_names=["Characteristic", "Drug A", "Drug B"],
    )


def _bottom_border(cell):
    tcPr = cell._tc.tcPr
    if tcPr is None:
        return None
    borders = tcPr.find(qn("w:tcBorders"))
    if borders is None:
        return None
    return borders.find(qn("w:bottom"))


# ═══════════════════════════════════════════════════════════════════════════════
# MARKUP TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestMarkup:
    """Tests for cell_spec and TextRenderer.split_markup."""

    def test_cell_spec_wraps(self):
        assert cell_spec("Age", bold=True) == "**Age**"
        assert cell_spec("Age", italic=True) == "*Age*"
        assert cell_spec("Age", bold=True, italic=True) == "***Age***"
        assert cell_spec("Age") == "Age"

    def test_cell_spec_missing_passthrough(self):
        """Missing values stay missing so they can still be replaced."""
        assert cell_spec(None, bold=True) is None
        assert pd.isna(cell_spec(float("nan"), bold=True))
        assert cell_spec("", bold=True) == ""

    def test_split_markup(self):
        parts = TextRenderer.split_markup("a **b** *c* ***d***")
        assert parts == [
            ("a ", False, False),
            ("b", True, False),
            (" ", False, False),
            ("c", False, True),
            (" ", False, False),
            ("d", True, True),
        ]

    def test_plain_text(self):
        assert TextRenderer.split_markup("46 (37, 59)") == [("46 (37, 59)", False, False)]


# ═══════════════════════════════════════════════════════════════════════════════
# TABLE CREATION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestKable:
    """Tests for kable()."""

    def test_header_and_body(self, table):
        rows = table.to_rows()

        assert rows[0] == ["Characteristic", "Drug A", "Drug B"]
        assert rows[1] == ["Age", "46 (37, 59)", "48 (39, 56)"]
        assert rows[3] == ["Grade", "", ""]
        assert table.n_header_rows == 1
        assert table.n_body_rows == 3

    def test_default_col_names(self, body):
        t = kable(body, columns=["label", "stat_1"])
        assert t.to_rows()[0] == ["label", "stat_1"]

    def test_col_names_length_checked(self, body):
        with pytest.raises(ValueError):
            kable(body, columns=["label", "stat_1"], col_names=["Only one"])

    def test_single_alignment_recycled(self, body):
        from docx.enum.text import WD_ALIGN_PARAGRAPH

        t = kable(body, columns=["label", "stat_1", "stat_2"], align="c")
        aligns = [cell.paragraphs[0].alignment for cell in t.table.rows[1].cells]
        assert aligns == [WD_ALIGN_PARAGRAPH.CENTER] * 3

    def test_letter_alignments_split(self, body):
        from docx.enum.text import WD_ALIGN_PARAGRAPH

        t = kable(body, columns=["label", "stat_1"], align="lr")
        aligns = [cell.paragraphs[0].alignment for cell in t.table.rows[1].cells]
        assert aligns == [WD_ALIGN_PARAGRAPH.LEFT, WD_ALIGN_PARAGRAPH.RIGHT]

    def test_alignment_length_checked(self, body):
        with pytest.raises(ValueError, match="alignments"):
            kable(body, columns=["label", "stat_1", "stat_2"], align=["l", "c"])

    def test_caption_paragraph(self, body):
        t = kable(body, columns=["label"], caption="Patient characteristics")
        assert t.doc.paragraphs[0].text == "Patient characteristics"

    def test_header_footnote_marks(self, body):
        t = kable(
            body,
            columns=["label", "stat_1"],
            col_names=["Characteristic", "Drug A"],
            footnote_marks=[FootnoteMark(column="stat_1", row=None, number=1)],
        )
        cell = t.table.rows[0].cells[1]
        runs = cell.paragraphs[0].runs

        assert cell.text == "Drug A1"
        assert runs[-1].text == "1"
        assert runs[-1].font.superscript is True

    def test_escape_writes_literal_text(self):
        df = pd.DataFrame({"label": ["**Age**"]}, dtype=object)
        t = kable(df, columns=["label"])
        assert t.to_rows()[1] == ["**Age**"]

    def test_unescaped_renders_markup(self):
        df = pd.DataFrame({"label": ["**Age**"]}, dtype=object)
        t = kable(df, columns=["label"], escape=False)
        run = t.table.rows[1].cells[0].paragraphs[0].runs[0]

        assert run.text == "Age"
        assert run.font.bold is True


# ═══════════════════════════════════════════════════════════════════════════════
# STYLING OPERATION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestStyling:
    """Tests for DocxTable styling methods."""

    def test_column_spec_mask(self, table):
        table.column_spec(1, bold=[True, False, True])

        bolded = [
            all(run.font.bold for run in table.body_row(r).cells[0].paragraphs[0].runs)
            for r in (1, 2, 3)
        ]
        assert bolded == [True, False, True]

    def test_column_spec_italic_scalar(self, table):
        table.column_spec(2, italic=True)
        run = table.body_row(1).cells[1].paragraphs[0].runs[0]
        assert run.font.italic is True

    def test_column_spec_bad_mask(self, table):
        with pytest.raises(ValueError):
            table.column_spec(1, bold=[True])

    def test_column_spec_bad_column(self, table):
        with pytest.raises(ValueError):
            table.column_spec(4, bold=True)

    def test_body_row_range(self, table):
        with pytest.raises(ValueError):
            table.body_row(0)
        with pytest.raises(ValueError):
            table.body_row(4)

    def test_add_indent(self, table):
        table.add_indent([2]).add_indent([3], level_of_indent=2)

        assert table.body_row(1).cells[0].paragraphs[0].paragraph_format.left_indent is None
        assert table.body_row(2).cells[0].paragraphs[0].paragraph_format.left_indent == Inches(0.25)
        assert table.body_row(3).cells[0].paragraphs[0].paragraph_format.left_indent == Inches(0.5)

    def test_row_spec_rules(self, table):
        """Row 0 is the header; other rows are body rows."""
        table.row_spec([0, 2], hline_after=True)

        assert _bottom_border(table.body_row(2).cells[0]) is not None
        assert _bottom_border(table.body_row(1).cells[0]) is None

    def test_row_spec_bold(self, table):
        table.row_spec(1, bold=True)
        assert all(run.font.bold for run in table.body_row(1).cells[1].paragraphs[0].runs)


# ═══════════════════════════════════════════════════════════════════════════════
# SPANNING HEADER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestAddHeaderAbove:
    """Tests for DocxTable.add_header_above."""

    def test_inserts_row_on_top(self, table):
        table.add_header_above([(" ", 1), ("Treatment", 2)])
        rows = table.to_rows()

        assert len(rows) == 5
        assert table.n_header_rows == 2
        assert rows[0][0] == ""
        assert rows[0][1] == "Treatment"
        assert rows[1] == ["Characteristic", "Drug A", "Drug B"]

    def test_merged_cell_spans_group(self, table):
        table.add_header_above([(" ", 1), ("Treatment", 2)])
        assert len(table.table.rows[0]._tr.tc_lst) == 2
        assert table.table.cell(0, 2).text == "Treatment"

    def test_rule_under_labelled_groups_only(self, table):
        table.add_header_above([(" ", 1), ("Treatment", 2)])

        assert _bottom_border(table.table.cell(0, 0)) is None
        assert _bottom_border(table.table.cell(0, 1)) is not None

    def test_body_rows_follow_new_header(self, table):
        table.add_header_above([("All", 3)])
        assert table.body_row(1).cells[0].text == "Age"

    def test_width_mismatch(self, table):
        with pytest.raises(ValueError, match="3 columns"):
            table.add_header_above([("Treatment", 2)])


# ═══════════════════════════════════════════════════════════════════════════════
# FOOTNOTE / OUTPUT TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestFootnoteAndSave:
    """Tests for footnotes and saving."""

    def test_numbered_footnotes(self, table):
        table.footnote(["Median (IQR)", "n (%)"])
        texts = [p.text for p in table.doc.paragraphs[-2:]]

        assert texts == ["1 Median (IQR)", "2 n (%)"]
        assert table.doc.paragraphs[-1].runs[0].font.superscript is True
        assert table.footnotes == ["Median (IQR)", "n (%)"]

    def test_save(self, table, tmp_path):
        from docx import Document

        path = table.save(tmp_path / "out.docx")
        reopened = Document(str(path))

        assert len(reopened.tables) == 1
        assert reopened.tables[0].rows[1].cells[0].text == "Age"

    def test_style_defaults(self, table):
        run = table.body_row(1).cells[0].paragraphs[0].runs[0]
        assert run.font.size == STYLE.BODY_SIZE
        assert run.font.name == STYLE.FONT
