"""URL encoding and query-string parsing for the gate's HTTP handlers."""

from __future__ import annotations

from typing import NamedTuple

_UNRESERVED = frozenset(b"-_.~")


class ParsedTarget(NamedTuple):
    """A request target split into its path and decoded query parameters."""

    path: str
    params: dict[str, str]


def to_hex(x: int) -> str:
    """Return the upper-case hex digit for a value in 0..15."""
    if not 0 <= x <= 15:
        raise ValueError(f"not a hex digit value: {x!r}")
    return chr(x + 55 if x > 9 else x + 48)


def from_hex(c: str) -> int:
    """Return the value of one hex digit character.

    Letters beyond F are accepted and continue the sequence, as the
    decoder has always done; any other character raises ValueError.
    """
    if len(c) != 1:
        raise ValueError(f"expected one character, got {c!r}")
    if "A" <= c <= "Z":
        return ord(c) - ord("A") + 10
    if "a" <= c <= "z":
        return ord(c) - ord("a") + 10
    if "0" <= c <= "9":
        return ord(c) - ord("0")
    raise ValueError(f"invalid hex digit: {c!r}")


def url_encode(text: str) -> str:
    """Percent-encode ``text``, writing spaces as ``+``."""
    out = []
    for byte in text.encode("utf-8", "surrogateescape"):
        ch = chr(byte)
        if (ch.isascii() and ch.isalnum()) or byte in _UNRESERVED:
            out.append(ch)
        elif byte == 0x20:
            out.append("+")
        else:
            out.append("%" + to_hex(byte >> 4) + to_hex(byte & 0x0F))
    return "".join(out)


def url_decode(text: str) -> str:
    """Reverse :func:`url_encode`; raises ValueError on a malformed escape."""
    out = bytearray()
    data = iter(text.encode("utf-8", "surrogateescape"))
    for byte in data:
        if byte == ord("+"):
            out.append(0x20)
        elif byte == ord("%"):
            high, low = next(data, None), next(data, None)
            if high is None or low is None:
                raise ValueError(f"truncated escape in {text!r}")
            out.append((from_hex(chr(high)) * 16 + from_hex(chr(low))) & 0xFF)
        else:
            out.append(byte)
    return out.decode("utf-8", "surrogateescape")


def parse_target(target: str) -> ParsedTarget:
    """Split a request target into its path and decoded query parameters.

    Pairs without ``=`` are ignored; a later key overrides an earlier one.
    """
    path, sep, query = target.partition("?")
    params: dict[str, str] = {}
    if sep:
        for pair in query.split("&"):
            key, eq, value = pair.partition("=")
            if eq:
                params[url_decode(key)] = url_decode(value)
    return ParsedTarget(path, params)