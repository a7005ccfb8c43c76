"""
Row Context - read-only view of the original values of one data row.

Rules that look at other columns (MATCHES, IF conditions built from
templates) resolve them here. The context is bound to the values captured
before any rule ran, so a column rewritten earlier in the same row is still
seen with its original content.
"""

from typing import Dict, Mapping, Sequence, Tuple


def build_column_index(columns: Sequence[str]) -> Dict[str, int]:
    """Map column names to field positions; the first occurrence wins."""
    index: Dict[str, int] = {}
    for position, name in enumerate(columns):
        index.setdefault(name, position)
    return index


class RowContext:
    """
    Lookup surface over the original snapshot of a row.

    Usage:
        context = RowContext.from_columns(["id", "email"], ["1", "a@b.c"])
        context.get("email")   # -> "a@b.c"
        context.get("missing") # -> ""
    """

    __slots__ = ("_column_index", "_values")

    def __init__(self, column_index: Mapping[str, int], values: Tuple[str, ...]):
        self._column_index = column_index
        self._values = values

    @classmethod
    def from_columns(cls, columns: Sequence[str], values: Sequence[str]) -> "RowContext":
        return cls(build_column_index(columns), tuple(values))

    @classmethod
    def empty(cls) -> "RowContext":
        return cls({}, ())

    def get(self, column: str) -> str:
        """Return the original value of ``column``, or "" if it is unknown."""
        position = self._column_index.get(column)
        if position is None or position >= len(self._values):
            return ""
        return self._values[position]

    def __contains__(self, column: str) -> bool:
        position = self._column_index.get(column)
        return position is not None and position < len(self._values)
