"""
Concrete backing sequences for the lazy iteration protocol.

These are the usual starting points of a pipeline: walking an existing
sequence, adapting a Python iterator, or generating numbers on demand.
"""

from collections.abc import Iterable, Sequence
from typing import Any, Iterator, Optional

from lazy import LazyIterable
from maybe import Maybe


class SequenceWalker(LazyIterable):
    """Walks an indexable sequence with a cursor; the sequence is not copied"""

    def __init__(self, items: Sequence, start: int = 0):
        self.items = items
        self.index = start

    def next(self) -> Maybe[Any]:
        if self.index < len(self.items):
            value = self.items[self.index]
            self.index += 1
            return Maybe.present(value)
        return Maybe.empty()


class IterAdapter(LazyIterable):
    """Adapts a Python iterable (generators included) to pull semantics"""

    def __init__(self, iterable: Iterable):
        self._it: Iterator = iter(iterable)

    def next(self) -> Maybe[Any]:
        try:
            return Maybe.present(next(self._it))
        except StopIteration:
            return Maybe.empty()


class Counting(LazyIterable):
    """
    Arithmetic sequence start, start+step, start+2*step, ...

    Unbounded unless `stop` is given, in which case it behaves like range().
    """

    def __init__(self, start: int = 0, step: int = 1, stop: Optional[int] = None):
        if step == 0:
            raise ValueError("step must not be zero")
        self.current = start
        self.step = step
        self.stop = stop

    def next(self) -> Maybe[int]:
        if self.stop is not None:
            if (self.step > 0 and self.current >= self.stop) or (self.step < 0 and self.current <= self.stop):
                return Maybe.empty()
        value = self.current
        self.current += self.step
        return Maybe.present(value)


class Fibonacci(LazyIterable):
    """Unbounded Fibonacci numbers: 0, 1, 1, 2, 3, 5, 8, ..."""

    def __init__(self):
        self.a = 0
        self.b = 1

    def next(self) -> Maybe[int]:
        value = self.a
        self.a, self.b = self.b, self.a + self.b
        return Maybe.present(value)


def from_iterable(items) -> LazyIterable:
    """Pick the cheapest backing for a Python collection or iterator."""
    if isinstance(items, LazyIterable):
        return items
    if isinstance(items, Sequence):
        return SequenceWalker(items)
    return IterAdapter(items)
