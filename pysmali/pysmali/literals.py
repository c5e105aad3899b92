"""Integer and string literals as they appear in smali text."""

from __future__ import annotations

import re

from pysmali.errors import SmaliSyntaxError

_INT_LITERAL = re.compile(
    r"(?P<sign>[-+]?)(?:0[xX](?P<hex>[0-9a-fA-F]+)|(?P<oct>0[0-7]+)|(?P<dec>\d+))(?P<suffix>[tTsSlL]?)"
)

# Suffix used for each array-data element width.
WIDTH_SUFFIXES = {1: "t", 2: "s", 4: "", 8: "L"}

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    '"': '"',
    "'": "'",
    "\\": "\\",
}
_REVERSE_ESCAPES = {v: k for k, v in _ESCAPES.items()}


def parse_int(text: str) -> int:
    """Decode a decimal, octal or hex integer with an optional ``t``/``s``/``L`` suffix."""
    match = _INT_LITERAL.fullmatch(text.strip())
    if match is None:
        raise SmaliSyntaxError("BAD_LITERAL", f"malformed integer literal {text!r}")
    if match["hex"] is not None:
        value = int(match["hex"], 16)
    elif match["oct"] is not None:
        value = int(match["oct"], 8)
    else:
        value = int(match["dec"])
    return -value if match["sign"] == "-" else value


def format_int(value: int, suffix: str = "") -> str:
    """Render ``value`` as signed hex, the way baksmali does (``0x1``, ``-0x1``)."""
    if value < 0:
        return f"-0x{-value:x}{suffix}"
    return f"0x{value:x}{suffix}"


def fits_width(value: int, bits: int) -> bool:
    """True if ``value`` is representable in ``bits`` bits, signed or unsigned."""
    return -(1 << (bits - 1)) <= value < (1 << bits)


def find_closing_quote(text: str, start: int) -> int:
    """Index of the quote closing the literal that opens at ``text[start]``, or -1."""
    quote = text[start]
    pos = start + 1
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == quote:
            return pos
        pos += 1
    return -1


def unescape(body: str) -> str:
    out: list[str] = []
    pos = 0
    while pos < len(body):
        ch = body[pos]
        if ch != "\\":
            out.append(ch)
            pos += 1
            continue
        if pos + 1 >= len(body):
            raise SmaliSyntaxError("BAD_LITERAL", f"dangling backslash in {body!r}")
        code = body[pos + 1]
        if code == "u":
            digits = body[pos + 2 : pos + 6]
            if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                raise SmaliSyntaxError("BAD_LITERAL", f"malformed \\u escape in {body!r}")
            out.append(chr(int(digits, 16)))
            pos += 6
        elif code in _ESCAPES:
            out.append(_ESCAPES[code])
            pos += 2
        else:
            raise SmaliSyntaxError("BAD_LITERAL", f"unknown escape \\{code} in {body!r}")
    # Rejoin surrogate pairs written as two \u escapes.
    return "".join(out).encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")


def escape(value: str) -> str:
    out: list[str] = []
    for ch in value:
        if ch in _REVERSE_ESCAPES:
            out.append("\\" + _REVERSE_ESCAPES[ch])
        elif " " <= ch <= "~":
            out.append(ch)
        else:
            units = ch.encode("utf-16-be", "surrogatepass")
            for i in range(0, len(units), 2):
                out.append(f"\\u{units[i]:02x}{units[i + 1]:02x}")
    return "".join(out)


def parse_string(text: str) -> str:
    """Decode a double-quoted string literal."""
    text = text.strip()
    if len(text) < 2 or not text.startswith('"') or find_closing_quote(text, 0) != len(text) - 1:
        raise SmaliSyntaxError("BAD_LITERAL", f"malformed string literal {text!r}")
    return unescape(text[1:-1])


def format_string(value: str) -> str:
    return f'"{escape(value)}"'
