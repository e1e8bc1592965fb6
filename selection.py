"""
Name selection helpers.

Selectors pick a subset of directive names. A selector is one of:
    - None: every name
    - a string: a name or glob pattern ("add_*")
    - a sequence of names/patterns
    - a callable taking the available names and returning the chosen ones

Unknown names select nothing; they are never an error.
"""

import fnmatch
import re
from typing import Callable, List, Sequence, Union


NameSelector = Union[None, str, Sequence[str], Callable[[List[str]], Sequence[str]]]


def select_names(selector: NameSelector, available: Sequence[str]) -> List[str]:
    """Resolve a selector against the available names, keeping their order"""
    available = list(available)

    if selector is None:
        return available

    if callable(selector):
        chosen = set(selector(available))
        return [name for name in available if name in chosen]

    patterns = [selector] if isinstance(selector, str) else list(selector)
    return [
        name
        for name in available
        if any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns)
    ]


def everything() -> Callable[[List[str]], List[str]]:
    return lambda names: list(names)


def all_of(*names: str) -> Callable[[List[str]], List[str]]:
    wanted = set(names)
    return lambda available: [n for n in available if n in wanted]


def starts_with(prefix: str) -> Callable[[List[str]], List[str]]:
    return lambda available: [n for n in available if n.startswith(prefix)]


def matches(pattern: str) -> Callable[[List[str]], List[str]]:
    regex = re.compile(pattern)
    return lambda available: [n for n in available if regex.search(n)]


def exclude(selector: NameSelector) -> Callable[[List[str]], List[str]]:
    """Everything the given selector does not pick"""

    def _select(available: List[str]) -> List[str]:
        dropped = set(select_names(selector, available))
        return [n for n in available if n not in dropped]

    return _select
