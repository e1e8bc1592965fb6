"""
Theme configuration for the converter.

A ThemeConfig is passed explicitly to as_docx_table() and carries:
    - pre_conversion: callable applied to the summary table before conversion
    - addl_cmds: extra directives spliced in after named anchors
    - kable_defaults: default keyword arguments for table creation

Themes can be loaded from YAML:

    kable:
      font_name: Arial
      font_size: 9
    addl_cmds:
      - after: kable
        method: row_spec
        args: {row: 0, bold: true}
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml

from directives import DIRECTIVE_ORDER


logger = logging.getLogger(__name__)


KNOWN_ANCHORS = frozenset(DIRECTIVE_ORDER)

_USER_ANCHOR_RE = re.compile(r"^user_added\d+$")

# DocxTable methods that YAML themes may call
THEME_METHODS = frozenset({"column_spec", "add_indent", "add_header_above", "row_spec", "footnote"})


class ThemeError(ValueError):
    """Raised for invalid theme configuration"""


class UnknownAnchorError(ThemeError):
    """Raised when an added directive names an anchor that can never exist"""

    def __init__(self, anchor: str):
        self.anchor = anchor
        super().__init__(
            f"Unknown directive anchor '{anchor}'; expected one of: "
            f"{', '.join(DIRECTIVE_ORDER)} or user_added<N>"
        )


def is_known_anchor(name: str) -> bool:
    return name in KNOWN_ANCHORS or bool(_USER_ANCHOR_RE.match(name))


@dataclass
class AddedDirective:
    """A user operation inserted after the directive named ``after``"""

    after: str
    func: Callable[[Any], Any]
    label: str = ""

    def __post_init__(self):
        if not is_known_anchor(self.after):
            raise UnknownAnchorError(self.after)
        if not callable(self.func):
            raise ThemeError(f"Added directive after '{self.after}' is not callable")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "AddedDirective":
        """Build from a YAML entry calling a DocxTable method"""
        if not isinstance(data, dict):
            raise ThemeError(f"addl_cmds entries must be mappings, got {data!r}")

        method = data.get("method")
        if method not in THEME_METHODS:
            raise ThemeError(
                f"Unknown table method '{method}'; expected one of: {', '.join(sorted(THEME_METHODS))}"
            )
        args = data.get("args") or {}
        if not isinstance(args, dict):
            raise ThemeError(f"'args' for {method} must be a mapping")

        def _call(table):
            return getattr(table, method)(**args)

        return cls(after=str(data.get("after", "")), func=_call, label=method)


@dataclass
class ThemeConfig:
    """Explicit converter configuration"""

    pre_conversion: Optional[Callable[[Any], Any]] = None
    addl_cmds: List[AddedDirective] = field(default_factory=list)
    kable_defaults: Dict[str, Any] = field(default_factory=dict)


def load_theme(
    file_path: Union[str, Path],
    pre_conversion: Optional[Callable[[Any], Any]] = None,
) -> ThemeConfig:
    """
    Load a theme from a YAML file.

    Args:
        file_path: Path to the YAML theme
        pre_conversion: Optional callable (not expressible in YAML)

    Returns:
        ThemeConfig

    Raises:
        ThemeError: If the theme is malformed
    """
    path = Path(file_path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ThemeError(f"Failed to parse theme {path.name}: {e}") from e

    if not isinstance(data, dict):
        raise ThemeError(f"Theme {path.name} must be a mapping")

    kable_defaults = data.get("kable") or {}
    if not isinstance(kable_defaults, dict):
        raise ThemeError("'kable' must be a mapping")

    addl = data.get("addl_cmds") or []
    if not isinstance(addl, list):
        raise ThemeError("'addl_cmds' must be a list")

    theme = ThemeConfig(
        pre_conversion=pre_conversion,
        addl_cmds=[AddedDirective.from_mapping(item) for item in addl],
        kable_defaults=dict(kable_defaults),
    )
    logger.debug(
        "Loaded theme %s: %d kable defaults, %d added directives",
        path.name,
        len(theme.kable_defaults),
        len(theme.addl_cmds),
    )
    return theme
