"""Shared fixtures: a small two-arm summary table."""

import pytest

from summary_table import summary_table_from_dict


TRIAL_TABLE = {
    "caption": "Patient characteristics",
    "table_body": [
        {"variable": "age", "row_type": "label", "label": "Age", "stat_1": "46 (37, 59)", "stat_2": "48 (39, 56)"},
        {"variable": "age", "row_type": "missing", "label": "Unknown", "stat_1": "7", "stat_2": None},
        {"variable": "grade", "row_type": "label", "label": "Grade", "stat_1": None, "stat_2": None},
        {"variable": "grade", "row_type": "level", "label": "I", "stat_1": "35 (36%)", "stat_2": "33 (32%)"},
        {"variable": "grade", "row_type": "level", "label": "II", "stat_1": "32 (33%)", "stat_2": "36 (35%)"},
    ],
    "header": [
        {"column": "variable", "hide": True},
        {"column": "row_type", "hide": True},
        {"column": "label", "label": "**Characteristic**"},
        {"column": "stat_1", "label": "**Drug A**", "spanning_header": "**Treatment**"},
        {"column": "stat_2", "label": "**Drug B**", "spanning_header": "**Treatment**"},
    ],
    "text_format": [
        {"format_type": "bold", "column": "label", "rows": "row_type == 'label'"},
        {"format_type": "indent", "column": "label", "rows": "row_type != 'label'"},
    ],
    "fmt_missing": [
        {"column": "stat_2", "rows": "row_type == 'missing'", "symbol": "—"},
    ],
    "footnote": [
        {"column": "stat_1", "footnote": "Median (IQR); n (%)"},
        {"column": "stat_2", "footnote": "Median (IQR); n (%)"},
    ],
    "horizontal_line_above": "row_type == 'label'",
}


@pytest.fixture
def trial_dict():
    """Raw definition of the sample table (deep enough copy for edits)."""
    import copy

    return copy.deepcopy(TRIAL_TABLE)


@pytest.fixture
def trial_table(trial_dict):
    """The sample table as a SummaryTable."""
    return summary_table_from_dict(trial_dict)
