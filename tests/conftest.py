"""
Pytest configuration file.

Puts the project root on the Python path so tests can import lazy, maybe,
pair, sources, utils, models and app directly.
"""

import sys
from pathlib import Path

parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import pytest

from lazy import LazyIterable
from maybe import Maybe


class CountingSource(LazyIterable):
    """Walks a list and records how many times next() was called"""

    def __init__(self, items):
        self.items = list(items)
        self.index = 0
        self.pulls = 0

    def next(self):
        self.pulls += 1
        if self.index < len(self.items):
            value = self.items[self.index]
            self.index += 1
            return Maybe.present(value)
        return Maybe.empty()


class Resumable(LazyIterable):
    """Yields from `first`, returns Empty once, then yields from `second` (not fused)"""

    def __init__(self, first, second):
        self.segments = [list(first), list(second)]
        self.pulls = 0

    def next(self):
        self.pulls += 1
        while self.segments:
            segment = self.segments[0]
            if segment:
                return Maybe.present(segment.pop(0))
            self.segments.pop(0)
            return Maybe.empty()
        return Maybe.empty()


@pytest.fixture
def counting_source():
    """Factory fixture for pull-counting sources"""
    return CountingSource


@pytest.fixture
def resumable():
    return Resumable


@pytest.fixture(autouse=True)
def clean_metrics():
    """Reset the service's performance metrics around each test"""
    from utils import clear_performance_metrics
    clear_performance_metrics()
    yield
    clear_performance_metrics()
