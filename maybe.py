"""
Maybe container returned by every pull.

A Maybe is either Empty or Present(value). The payload is only ever read
through unwrap() after the caller has checked presence.
"""

import logging
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ItplusError(Exception):
    """Base class for all errors raised by the iteration library"""


class EmptyUnwrapError(ItplusError, RuntimeError):
    """Raised when unwrap() is called on an Empty Maybe (a caller bug)"""


class Maybe(Generic[T]):
    """Presence or absence of a single value"""

    __slots__ = ("_present", "_value")

    def __init__(self, present: bool, value: Optional[T] = None):
        self._present = present
        self._value = value if present else None

    # --------- constructors ----------
    @classmethod
    def present(cls, value: T) -> "Maybe[T]":
        return cls(True, value)

    @classmethod
    def empty(cls) -> "Maybe[Any]":
        return _EMPTY

    # --------- predicates ----------
    def is_present(self) -> bool:
        return self._present

    def is_empty(self) -> bool:
        return not self._present

    def __bool__(self):
        return self._present

    # --------- extraction ----------
    def unwrap(self) -> T:
        """Return the payload; unwrapping Empty is a programmer error"""
        if not self._present:
            logger.critical("Attempted to extract a present value from Empty")
            raise EmptyUnwrapError("Attempted to extract a present value from Empty")
        return self._value

    def unwrap_unchecked(self) -> T:
        """Return the payload slot without checking; only for proven-present values"""
        return self._value

    def unwrap_or(self, default: T) -> T:
        return self._value if self._present else default

    def map(self, fn: Callable[[T], R]) -> "Maybe[R]":
        if not self._present:
            return _EMPTY
        return Maybe(True, fn(self._value))

    # --------- value semantics ----------
    def __eq__(self, other):
        if not isinstance(other, Maybe):
            return NotImplemented
        if self._present != other._present:
            return False
        return not self._present or self._value == other._value

    def __hash__(self):
        """Hashable exactly when the payload is; hash(Present([1])) raises TypeError"""
        return hash((self._present, self._value))

    def __repr__(self):
        if self._present:
            return f"Present({self._value!r})"
        return "Empty"


_EMPTY: Maybe[Any] = Maybe(False)

present = Maybe.present
empty = Maybe.empty
