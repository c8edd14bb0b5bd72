"""
Lazy pull-based iteration protocol and combinator library.

Every sequence is a LazyIterable: an object with a single next() method that
returns Maybe.present(value) or Maybe.empty(). Combinators wrap one or two
sources and are themselves LazyIterables, so pipelines compose to any depth:

    fib = Fibonacci()
    evens = fib.take(10).filter(lambda x: x % 2 == 0).collect()   # [0, 2, 8, 34]

Nothing is pulled until a terminal operation (collect, reduce, fold, ...) or a
Python for-loop asks for it, and no combinator buffers more than one element.
"""

import logging
import operator
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, Protocol, TypeVar, runtime_checkable

from maybe import ItplusError, Maybe
from pair import Pair

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")
A = TypeVar("A")

COLLECT_INITIAL_CAPACITY = 64


class CollectError(ItplusError, MemoryError):
    """Raised when collect() cannot grow its output buffer"""

    def __init__(self, message: str, collected: int = 0):
        super().__init__(message)
        self.collected = collected


@runtime_checkable
class PullSource(Protocol[T]):
    """Anything exposing a next() -> Maybe pull operation"""

    def next(self) -> Maybe[T]:
        ...


class Gate(str, Enum):
    """Two-state latch used by take_while / drop_while; transitions happen once"""
    GATED = "gated"
    PASSTHROUGH = "passthrough"


def _clamp_count(n) -> int:
    # Negative counts behave like zero
    return max(0, operator.index(n))


class LazyIterable(ABC, Generic[T]):
    """
    Uniform handle over any pull-based sequence.

    Subclasses implement next(). Calling next() after it returned Empty is
    allowed; whether more values follow depends on the concrete source. The
    Python iterator bridge (__iter__) stops at the first Empty.

    Building a combinator hands the source over to it: keep using the result,
    not the source, unless you want to interleave pulls on purpose.
    """

    @abstractmethod
    def next(self) -> Maybe[T]:
        ...

    def __iter__(self):
        while True:
            item = self.next()
            if item.is_empty():
                return
            yield item.unwrap_unchecked()

    # --------- chainable combinators (lazy) ----------
    def take(self, n: int) -> "LazyIterable[T]":
        return Take(self, n)

    def drop(self, n: int) -> "LazyIterable[T]":
        return Drop(self, n)

    def map(self, fn: Callable[[T], R]) -> "LazyIterable[R]":
        return Map(self, fn)

    def filter(self, predicate: Callable[[T], bool]) -> "LazyIterable[T]":
        return Filter(self, predicate)

    def filter_map(self, fn: Callable[[T], Maybe[R]]) -> "LazyIterable[R]":
        return FilterMap(self, fn)

    def chain(self, other) -> "LazyIterable[T]":
        return Chain(self, other)

    def take_while(self, predicate: Callable[[T], bool]) -> "LazyIterable[T]":
        return TakeWhile(self, predicate)

    def drop_while(self, predicate: Callable[[T], bool]) -> "LazyIterable[T]":
        return DropWhile(self, predicate)

    def enumerate(self) -> "LazyIterable[Pair]":
        return Enumerate(self)

    def zip(self, other) -> "LazyIterable[Pair]":
        return Zip(self, other)

    def elem_indices(self) -> "LazyIterable[int]":
        return ElemIndices(self)

    # --------- terminal operations (consume the iterable) ----------
    def reduce(self, fn: Callable[[T, T], T]) -> Maybe[T]:
        return reduce(self, fn)

    def fold(self, init: A, fn: Callable[[A, T], A]) -> A:
        return fold(self, init, fn)

    def collect(self, capacity: Optional[int] = None) -> List[T]:
        return collect(self, capacity)

    def for_each(self, fn: Callable[[T], Any]) -> int:
        return for_each(self, fn)

    def count(self) -> int:
        return count(self)


# ---------- Adapters ----------

class Wrapped(LazyIterable[T]):
    """Adapts any PullSource (an object with next() -> Maybe) into a LazyIterable"""

    def __init__(self, state: PullSource[T]):
        if not isinstance(state, PullSource):
            raise TypeError(f"{type(state).__name__} does not provide a next() pull operation")
        self.state = state

    def next(self) -> Maybe[T]:
        return self.state.next()


class FromNext(LazyIterable[T]):
    """Adapts a zero-argument callable returning Maybe into a LazyIterable"""

    def __init__(self, fn: Callable[[], Maybe[T]]):
        self.fn = fn

    def next(self) -> Maybe[T]:
        return self.fn()


def wrap(state) -> LazyIterable:
    """Expose caller-owned state through the uniform LazyIterable type."""
    if isinstance(state, LazyIterable):
        return state
    return Wrapped(state)


def from_next(fn: Callable[[], Maybe[T]]) -> LazyIterable[T]:
    return FromNext(fn)


# ---------- Combinators ----------

class Take(LazyIterable[T]):
    """Yields at most `limit` elements; take(0) never pulls the source"""

    def __init__(self, source, n: int):
        self.source = wrap(source)
        self.limit = _clamp_count(n)
        self.taken = 0

    def next(self) -> Maybe[T]:
        if self.taken < self.limit:
            self.taken += 1
            return self.source.next()
        return Maybe.empty()


class Drop(LazyIterable[T]):
    """Discards the first `limit` elements, then passes the rest through"""

    def __init__(self, source, n: int):
        self.source = wrap(source)
        self.limit = _clamp_count(n)
        self.dropped = 0

    def next(self) -> Maybe[T]:
        while self.dropped < self.limit:
            item = self.source.next()
            if item.is_empty():
                return item
            self.dropped += 1
        return self.source.next()


class Map(LazyIterable[R]):
    def __init__(self, source, fn: Callable[[Any], R]):
        self.source = wrap(source)
        self.fn = fn

    def next(self) -> Maybe[R]:
        return self.source.next().map(self.fn)


class Filter(LazyIterable[T]):
    """Yields only the elements for which `predicate` holds"""

    def __init__(self, source, predicate: Callable[[T], bool]):
        self.source = wrap(source)
        self.predicate = predicate

    def next(self) -> Maybe[T]:
        while True:
            item = self.source.next()
            if item.is_empty() or self.predicate(item.unwrap_unchecked()):
                return item


class FilterMap(LazyIterable[R]):
    """Applies a Maybe-returning `fn` and yields only the Present results"""

    def __init__(self, source, fn: Callable[[Any], Maybe[R]]):
        self.source = wrap(source)
        self.fn = fn

    def next(self) -> Maybe[R]:
        while True:
            item = self.source.next()
            if item.is_empty():
                return item
            mapped = self.fn(item.unwrap_unchecked())
            if mapped.is_present():
                return mapped


class Chain(LazyIterable[T]):
    """
    Yields everything from the first source, then everything from the second.

    Only two segments are held; longer chains are built by chaining chains.
    Once the first source reports Empty it is never pulled again.
    """

    def __init__(self, first, second):
        self.current = wrap(first)
        self.following = wrap(second)

    def next(self) -> Maybe[T]:
        item = self.current.next()
        if item.is_present():
            return item
        self.current = self.following
        return self.current.next()


class TakeWhile(LazyIterable[T]):
    """
    Yields elements while `predicate` holds.

    The first failing element (or the first Empty from the source) closes the
    gate for good: later pulls return Empty without touching the source.
    """

    def __init__(self, source, predicate: Callable[[T], bool]):
        self.source = wrap(source)
        self.predicate = predicate
        self.gate = Gate.PASSTHROUGH

    def next(self) -> Maybe[T]:
        if self.gate is Gate.GATED:
            return Maybe.empty()
        item = self.source.next()
        if item.is_empty() or not self.predicate(item.unwrap_unchecked()):
            self.gate = Gate.GATED
            return Maybe.empty()
        return item


class DropWhile(LazyIterable[T]):
    """
    Skips elements while `predicate` holds, then passes everything through.

    The gate opens on the first failing element (which is yielded) or on the
    first Empty from the source; after that the predicate is never called again.
    """

    def __init__(self, source, predicate: Callable[[T], bool]):
        self.source = wrap(source)
        self.predicate = predicate
        self.gate = Gate.GATED

    def next(self) -> Maybe[T]:
        if self.gate is Gate.PASSTHROUGH:
            return self.source.next()
        while True:
            item = self.source.next()
            if item.is_empty() or not self.predicate(item.unwrap_unchecked()):
                self.gate = Gate.PASSTHROUGH
                return item


class Enumerate(LazyIterable[Pair]):
    """Yields Pair(index, value), counting from 0"""

    def __init__(self, source):
        self.source = wrap(source)
        self.counter = 0

    def next(self) -> Maybe[Pair]:
        item = self.source.next()
        if item.is_empty():
            return item
        pair = Pair(self.counter, item.unwrap_unchecked())
        self.counter += 1
        return Maybe.present(pair)


class Zip(LazyIterable[Pair]):
    """
    Yields Pair(left, right) until either side is exhausted.

    The left side is pulled first; if the right side is Empty on the same
    step, the left value already pulled is dropped (same as builtin zip).
    """

    def __init__(self, left, right):
        self.left = wrap(left)
        self.right = wrap(right)

    def next(self) -> Maybe[Pair]:
        a = self.left.next()
        if a.is_empty():
            return a
        b = self.right.next()
        if b.is_empty():
            return b
        return Maybe.present(Pair(a.unwrap_unchecked(), b.unwrap_unchecked()))


class ElemIndices(LazyIterable[int]):
    """Yields the iteration index of every element the source produces"""

    def __init__(self, source):
        self.source = wrap(source)
        self.index = 0

    def next(self) -> Maybe[int]:
        if self.source.next().is_empty():
            return Maybe.empty()
        index = self.index
        self.index += 1
        return Maybe.present(index)


# ---------- Terminal operations ----------

def reduce(iterable, fn: Callable[[T, T], T]) -> Maybe[T]:
    """Fold using the first element as the seed; Empty for an empty source."""
    source = wrap(iterable)
    first = source.next()
    if first.is_empty():
        return first
    acc = first.unwrap_unchecked()
    for value in source:
        acc = fn(acc, value)
    return Maybe.present(acc)


def fold(iterable, init: A, fn: Callable[[A, T], A]) -> A:
    """Left fold from a caller-supplied seed; returns `init` for an empty source."""
    acc = init
    for value in wrap(iterable):
        acc = fn(acc, value)
    return acc


def _grow_buffer(buffer: list, additional: int) -> None:
    buffer.extend([None] * additional)


def _reserve(buffer: list, additional: int, collected: int) -> None:
    try:
        _grow_buffer(buffer, additional)
    except MemoryError as e:
        logger.error(f"collect: failed to grow buffer to {len(buffer) + additional} slots after {collected} items")
        raise CollectError(
            f"Out of memory while collecting (after {collected} items)", collected=collected
        ) from e


def collect(iterable, capacity: Optional[int] = None) -> List[T]:
    """
    Pull every element into a list.

    The buffer starts at `capacity` slots (COLLECT_INITIAL_CAPACITY by default)
    and doubles whenever it fills up. A failed growth step raises CollectError;
    a partially filled list is never returned.
    """
    size = COLLECT_INITIAL_CAPACITY if capacity is None else capacity
    if size < 1:
        raise ValueError(f"collect capacity must be >= 1, got {size}")

    source = wrap(iterable)
    buffer: list = []
    _reserve(buffer, size, 0)
    length = 0
    for value in source:
        if length == size:
            _reserve(buffer, size, length)
            size *= 2
            logger.debug(f"collect: buffer grown to {size} slots")
        buffer[length] = value
        length += 1

    del buffer[length:]
    logger.debug(f"collect: {length} items")
    return buffer


def for_each(iterable, fn: Callable[[T], Any]) -> int:
    """Call `fn` on every element; returns how many elements were visited."""
    visited = 0
    for value in wrap(iterable):
        fn(value)
        visited += 1
    return visited


def count(iterable) -> int:
    return fold(iterable, 0, lambda n, _: n + 1)
