"""
Pair: the element type produced by enumerate and zip.
"""

from typing import Any, NamedTuple


class Pair(NamedTuple):
    """Immutable two-element tuple {first, second}"""
    first: Any
    second: Any

    def swap(self) -> "Pair":
        return Pair(self.second, self.first)

    def __repr__(self):
        return f"Pair({self.first!r}, {self.second!r})"
