import logging

import pytest

from maybe import EmptyUnwrapError, ItplusError, Maybe, empty, present
from pair import Pair


class TestMaybe:
    """Test the Maybe container returned by every pull"""

    def test_present_and_empty_predicates(self):
        value = Maybe.present(42)
        assert value.is_present() and not value.is_empty()
        assert bool(value)

        nothing = Maybe.empty()
        assert nothing.is_empty() and not nothing.is_present()
        assert not bool(nothing)

    def test_present_holds_falsy_payloads(self):
        """Present(0) / Present(None) are still present"""
        assert Maybe.present(0).is_present()
        assert Maybe.present(None).is_present()
        assert Maybe.present(0).unwrap() == 0

    def test_unwrap_returns_payload(self):
        payload = [1, 2, 3]
        assert Maybe.present(payload).unwrap() is payload, "present() must not copy the value"

    def test_unwrap_empty_is_a_programmer_error(self, caplog):
        with caplog.at_level(logging.CRITICAL, logger="maybe"):
            with pytest.raises(EmptyUnwrapError):
                Maybe.empty().unwrap()
        assert any(r.levelno == logging.CRITICAL for r in caplog.records)

    def test_unwrap_error_hierarchy(self):
        assert issubclass(EmptyUnwrapError, ItplusError)
        assert issubclass(EmptyUnwrapError, RuntimeError)

    def test_unwrap_unchecked(self):
        assert Maybe.present("x").unwrap_unchecked() == "x"
        assert Maybe.empty().unwrap_unchecked() is None

    def test_unwrap_or(self):
        assert Maybe.present(3).unwrap_or(7) == 3
        assert Maybe.empty().unwrap_or(7) == 7

    def test_map(self):
        assert Maybe.present(3).map(lambda x: x * 10) == Maybe.present(30)
        calls = []
        assert Maybe.empty().map(calls.append).is_empty()
        assert calls == [], "map must not call fn on Empty"

    def test_equality(self):
        assert Maybe.present(1) == Maybe.present(1)
        assert Maybe.present(1) != Maybe.present(2)
        assert Maybe.empty() == Maybe.empty()
        assert Maybe.present(None) != Maybe.empty()
        assert Maybe.empty() is Maybe.empty(), "Empty is a shared instance"

    def test_hash_follows_payload(self):
        assert hash(Maybe.present(1)) == hash(Maybe.present(1))
        assert len({Maybe.empty(), Maybe.empty(), Maybe.present(None)}) == 2
        with pytest.raises(TypeError):
            hash(Maybe.present([1]))

    def test_module_aliases(self):
        assert present(5) == Maybe.present(5)
        assert empty() is Maybe.empty()

    def test_repr(self):
        assert repr(Maybe.present(5)) == "Present(5)"
        assert repr(Maybe.empty()) == "Empty"


class TestPair:
    """Test the Pair tuple produced by enumerate and zip"""

    def test_fields_and_unpacking(self):
        pair = Pair(1, "a")
        assert pair.first == 1 and pair.second == "a"
        first, second = pair
        assert (first, second) == (1, "a")

    def test_immutable(self):
        pair = Pair(1, 2)
        with pytest.raises(AttributeError):
            pair.first = 5

    def test_swap_and_equality(self):
        assert Pair(1, 2).swap() == Pair(2, 1)
        assert Pair(1, 2) == (1, 2)
