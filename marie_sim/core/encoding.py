# encoding.py: 16-bit word / 12-bit address helpers, literal parsing, hex rendering
import string

WORD_BITS = 16
WORD_MASK = (1 << WORD_BITS) - 1
SIGN_BIT = 1 << (WORD_BITS - 1)

MIN_WORD = -(1 << (WORD_BITS - 1))
MAX_WORD = (1 << (WORD_BITS - 1)) - 1

OPR_BITS = 12
OPR_MASK = (1 << OPR_BITS) - 1

MEM_SIZE = 1 << OPR_BITS


def to_twos_complement(val: int) -> int:
    """Wrap any Python int into an unsigned 16-bit word."""
    return val & WORD_MASK


def from_twos_complement(bits: int) -> int:
    bits &= WORD_MASK
    if bits & SIGN_BIT:
        return bits - (1 << WORD_BITS)
    return bits


def wrap_word(val: int) -> int:
    """Truncate to the signed 16-bit range (AC arithmetic never saturates)."""
    return from_twos_complement(to_twos_complement(val))


def addr12(val: int) -> int:
    return val & OPR_MASK


def hex4(word: int) -> str:
    return f"{word & WORD_MASK:04X}"


def parse_int(tok: str) -> int:
    """Parse a decimal or prefixed (0x / 0o / 0b) integer literal, optionally signed."""
    t = tok.strip()
    if not t:
        raise ValueError("empty integer literal")
    sign = 1
    if t[0] in "+-":
        sign = -1 if t[0] == "-" else 1
        t = t[1:]
    low = t.lower()
    if low.startswith("0x"):
        return sign * int(t[2:], 16)
    if low.startswith("0o"):
        return sign * int(t[2:], 8)
    if low.startswith("0b"):
        return sign * int(t[2:], 2)
    if not t.isdigit():
        raise ValueError(f"invalid integer literal: {tok!r}")
    return sign * int(t, 10)


def parse_hex(tok: str) -> int:
    h = tok.strip()
    if h.lower().startswith("0x"):
        h = h[2:]
    if not h or not all(c in string.hexdigits for c in h):
        raise ValueError(f"invalid hex token: {tok!r}")
    return int(h, 16)


def strip_comments(line: str) -> str:
    """Cut a line at the first ';' or '#'."""
    cut = [p for p in (line.find(";"), line.find("#")) if p != -1]
    return line[:min(cut)] if cut else line
