#!/usr/bin/env python3
import pytest

from spigot.digits.source import DigitSource, DualDigitSource
from spigot.digits.spigots import Constant, check_base, format_in_base
from spigot.errors import ConfigurationError


def _digits(text: str):
    return [int(c, 36) for c in text]


@pytest.mark.parametrize("constant, base, prefix", [
    (Constant.PI, 10, "314159265358979323846"),
    (Constant.PI, 16, "3243f6a8885a308d3"),
    (Constant.PI, 2, "110010010000111111011010101"),
    (Constant.E, 10, "2718281828459045235"),
    (Constant.E, 16, "2b7e151628aed2a6a"),
    (Constant.E, 2, "1010110111111"),
    (Constant.LN2, 10, "06931471805599453"),
    (Constant.LN2, 2, "010110001011100100001"),
    (Constant.CHAMPERNOWNE, 10, "01234567891011121314"),
    (Constant.CHAMPERNOWNE, 2, "011011100101110111"),
    (Constant.THUE_MORSE, 10, "0110100110010110"),
])
def test_known_prefixes(constant, base, prefix):
    assert DigitSource(constant, base).take(len(prefix)) == _digits(prefix)


def test_liouville_ones_at_factorials():
    digits = DigitSource(Constant.LIOUVILLE, 7).take(121)
    assert [i for i, d in enumerate(digits) if d] == [1, 2, 6, 24, 120]


def test_digits_stay_below_base():
    for base in (2, 3, 7, 10, 16, 36):
        for c in Constant:
            assert all(0 <= d < base for d in DigitSource(c, base).take(40))


def test_deterministic_and_restartable():
    a = DigitSource(Constant.E, 12)
    b = DigitSource(Constant.E, 12)
    first = a.take(50)
    assert first == b.take(50)
    a.reset()
    assert a.position == 0
    assert a.take(50) == first


def test_drop_advances_position():
    s = DigitSource(Constant.PI, 10)
    s.drop(5)
    assert s.position == 5
    assert s.next() == 9


@pytest.mark.parametrize("bad", [0, 1, 37, -10, "abc", 2.5, True, None])
def test_invalid_base_rejected(bad):
    with pytest.raises(ConfigurationError):
        DigitSource(Constant.PI, bad)


def test_base_accepts_digit_strings():
    assert check_base(" 16 ") == 16


def test_constant_parse():
    assert Constant.parse("pi") is Constant.PI
    assert Constant.parse("π") is Constant.PI
    assert Constant.parse("2") is Constant.E
    assert Constant.parse("Thue-Morse") is Constant.THUE_MORSE
    with pytest.raises(ConfigurationError):
        Constant.parse("tau")
    with pytest.raises(ConfigurationError):
        Constant.parse("99")


def test_format_in_base():
    assert format_in_base(Constant.PI, 16, 8) == "3.243f6a8"
    assert format_in_base(Constant.PI, 2, 6) == "11.0010"
    assert format_in_base(Constant.LN2, 10, 5) == "0.6931"
    assert format_in_base(Constant.THUE_MORSE, 10, 5) == "0.01101"


def test_dual_source_pairs_and_twist():
    dual = DualDigitSource.of(Constant.PI, Constant.E, 10)
    assert dual.take(3) == [(3, 2), (1, 7), (4, 1)]
    dual.twist()
    assert dual.next() == (8, 1)
    assert dual.left.constant is Constant.E


def test_dual_source_drop_one_side():
    dual = DualDigitSource.of(Constant.PI, Constant.E, 10)
    dual.drop_left(2)
    assert dual.next() == (4, 2)
    dual.drop_right(1)
    assert dual.next() == (1, 1)


def test_snip_leaves_cursors_alone():
    dual = DualDigitSource.of(Constant.PI, Constant.E, 10)
    dual.take(4)
    pairs = dual.snip("intro", 1, 4)
    assert pairs == [(1, 7), (4, 1), (1, 8)]
    assert dual.snippet("intro") == pairs
    assert dual.snippet_keys() == ["intro"]
    assert dual.snippet("missing") is None
    assert dual.left.position == 4
    assert dual.next() == (5, 2)


def test_snip_rejects_bad_range():
    dual = DualDigitSource.of(Constant.PI, Constant.E)
    with pytest.raises(ConfigurationError):
        dual.snip("x", 5, 2)
    with pytest.raises(ConfigurationError):
        dual.snip("x", -1, 2)
