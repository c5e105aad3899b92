from __future__ import annotations

import pytest

from pysmali import SmaliSyntaxError
from pysmali.literals import fits_width, format_int, format_string, parse_int, parse_string


@pytest.mark.parametrize(
    "text, value",
    [
        ("0x1", 1),
        ("-0x1", -1),
        ("0X1F", 31),
        ("42", 42),
        ("010", 8),
        ("0", 0),
        ("0x7ft", 127),
        ("-0x8000s", -32768),
        ("0x100000000L", 1 << 32),
        ("+5", 5),
    ],
)
def test_parse_int(text, value):
    assert parse_int(text) == value


@pytest.mark.parametrize("bad", ["", "0x", "1.5", "abc", "0xg", "--1", "1LL"])
def test_parse_int_rejects(bad):
    with pytest.raises(SmaliSyntaxError) as exc:
        parse_int(bad)
    assert exc.value.error_code == "BAD_LITERAL"


def test_format_int_is_signed_hex():
    assert format_int(0) == "0x0"
    assert format_int(255) == "0xff"
    assert format_int(-1) == "-0x1"
    assert format_int(-1, "L") == "-0x1L"


def test_fits_width_accepts_signed_and_unsigned():
    assert fits_width(-128, 8)
    assert fits_width(255, 8)
    assert not fits_width(256, 8)
    assert not fits_width(-129, 8)


def test_parse_string_escapes():
    assert parse_string(r'"a\nb\t\"q\"\\"') == 'a\nb\t"q"\\'
    assert parse_string(r'"\u00e9\u4e2d"') == "\u00e9\u4e2d"


def test_parse_string_joins_surrogate_pairs():
    assert parse_string(r'"\ud83d\ude00"') == "\U0001f600"


@pytest.mark.parametrize("bad", ['"open', "noquotes", r'"bad \q"', r'"\u12"', '"a" b'])
def test_parse_string_rejects(bad):
    with pytest.raises(SmaliSyntaxError):
        parse_string(bad)


def test_format_string_escapes_non_ascii():
    assert format_string('say "hi"\n') == r'"say \"hi\"\n"'
    assert format_string("caf\u00e9") == r'"caf\u00e9"'
    assert format_string("\U0001f600") == r'"\ud83d\ude00"'
