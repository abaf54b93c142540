"""CBOR diagnostic notation input (RFC 8949 section 8, RFC 8610 appendix G).

WHY: Protocol write-ups and test vectors are published as diagnostic
notation. Accepting it as input lets users paste a vector and get the
hex, bytewords or UR straight back, and lets the diagnostic view be
edited and re-encoded.

HOW: A small recursive-descent parser walks the text once and emits CBOR
bytes directly, never building an intermediate Python value, so tags,
indefinite lengths and float widths survive exactly as written.
looks_like_diagnostic() is the cheap pre-check the detector runs before
attempting a full parse.

RULES:
- Integers, tags and lengths use the shortest head that fits
- Floats use the shortest of half/single/double that holds the value
  exactly; NaN and the infinities are half precision
- Strings: "text" with JSON escapes, h'hex', b64'base64', 'bytes', and
  (_ chunk, ...) for indefinite strings; an empty (_ ) is a byte string
- Containers: [..], {k: v, ..}, with a leading "_ " for indefinite length
- <<item, ..>> wraps the encoded items in a byte string
- /comments/ are skipped wherever whitespace is allowed
- Anything left over after the top-level item raises CodecError
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import struct

from ur_playground.core.errors import CodecError
from ur_playground.formatters.cbor_items import (
    BREAK,
    MAJOR_ARRAY,
    MAJOR_BYTES,
    MAJOR_MAP,
    MAJOR_NEGATIVE,
    MAJOR_SIMPLE,
    MAJOR_TAG,
    MAJOR_TEXT,
    MAJOR_UNSIGNED,
)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
_WORD_RE = re.compile(r"[A-Za-z]+")
_INDICATORS = ("h'", "b64'", "simple(", "(_", "{_", "[_", "<<")
_TAG_START_RE = re.compile(r"^\d+\(")

_LITERALS = {
    "false": bytes([0xF4]),
    "true": bytes([0xF5]),
    "null": bytes([0xF6]),
    "undefined": bytes([0xF7]),
    "NaN": bytes.fromhex("f97e00"),
    "Infinity": bytes.fromhex("f97c00"),
}

_MAX_ARG = 0xFFFFFFFFFFFFFFFF


def _unescape_single(body: str) -> str:
    return re.sub(r"\\(.)", r"\1", body)


def encode_head(major: int, arg: int) -> bytes:
    """Initial byte plus argument, shortest form."""
    if arg < 0 or arg > _MAX_ARG:
        raise CodecError("Argument {} does not fit a CBOR head".format(arg))
    if arg < 24:
        return bytes([(major << 5) | arg])
    for info, width in ((24, 1), (25, 2), (26, 4), (27, 8)):
        if arg < 1 << (8 * width):
            return bytes([(major << 5) | info]) + arg.to_bytes(width, "big")
    raise CodecError("Argument {} does not fit a CBOR head".format(arg))


def encode_float(value: float) -> bytes:
    """Shortest float encoding that round-trips the value exactly."""
    for info, fmt in ((25, ">e"), (26, ">f")):
        try:
            packed = struct.pack(fmt, value)
        except OverflowError:
            continue
        if struct.unpack(fmt, packed)[0] == value:
            return bytes([(MAJOR_SIMPLE << 5) | info]) + packed
    return bytes([(MAJOR_SIMPLE << 5) | 27]) + struct.pack(">d", value)


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    # ------------------------------------------------------------------
    # Cursor helpers
    # ------------------------------------------------------------------

    def error(self, message: str) -> CodecError:
        return CodecError("{} at position {}".format(message, self.pos))

    def skip_space(self) -> None:
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch.isspace():
                self.pos += 1
            elif ch == "/":
                end = self.text.find("/", self.pos + 1)
                if end < 0:
                    raise self.error("Unterminated comment")
                self.pos = end + 1
            else:
                break

    def peek(self) -> str:
        self.skip_space()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def startswith(self, token: str) -> bool:
        self.skip_space()
        return self.text.startswith(token, self.pos)

    def expect(self, token: str) -> None:
        if not self.startswith(token):
            raise self.error("Expected {!r}".format(token))
        self.pos += len(token)

    def accept(self, token: str) -> bool:
        if self.startswith(token):
            self.pos += len(token)
            return True
        return False

    def indefinite_marker(self) -> bool:
        """Consume a leading "_" that marks indefinite length."""
        if self.peek() == "_":
            self.pos += 1
            return True
        return False

    def separated(self, close: str, item) -> list:
        """Comma-separated items up to the closing token."""
        items = []
        if self.accept(close):
            return items
        while True:
            items.append(item())
            if self.accept(close):
                return items
            self.expect(",")

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def item(self) -> bytes:
        ch = self.peek()
        if not ch:
            raise self.error("Unexpected end of input")
        if ch == "[":
            return self.array()
        if ch == "{":
            return self.mapping()
        if ch == '"':
            return self.text_string()
        if ch == "'":
            return self.byte_string(_unescape_single(self.quoted("'")).encode("utf-8"))
        if self.startswith("<<"):
            return self.embedded()
        if self.startswith("(_"):
            return self.indefinite_string()
        if self.startswith("h'"):
            self.pos += 1
            return self.byte_string(self.hex_literal(self.quoted("'")))
        if self.startswith("b64'"):
            self.pos += 3
            return self.byte_string(self.b64_literal(self.quoted("'")))
        if ch == "-" or ch.isdigit():
            return self.number()
        return self.word()

    def array(self) -> bytes:
        self.expect("[")
        if self.indefinite_marker():
            return bytes([(MAJOR_ARRAY << 5) | 31]) + b"".join(self.separated("]", self.item)) + bytes([BREAK])
        items = self.separated("]", self.item)
        return encode_head(MAJOR_ARRAY, len(items)) + b"".join(items)

    def mapping(self) -> bytes:
        self.expect("{")
        indefinite = self.indefinite_marker()
        pairs = self.separated("}", self.pair)
        if indefinite:
            return bytes([(MAJOR_MAP << 5) | 31]) + b"".join(pairs) + bytes([BREAK])
        return encode_head(MAJOR_MAP, len(pairs)) + b"".join(pairs)

    def pair(self) -> bytes:
        key = self.item()
        self.expect(":")
        return key + self.item()

    def embedded(self) -> bytes:
        self.expect("<<")
        return self.byte_string(b"".join(self.separated(">>", self.item)))

    def indefinite_string(self) -> bytes:
        self.expect("(_")
        start = self.pos
        chunks = self.separated(")", self.item)
        majors = {chunk[0] >> 5 for chunk in chunks}
        if len(majors) > 1 or not majors <= {MAJOR_BYTES, MAJOR_TEXT}:
            self.pos = start
            raise self.error("Indefinite string chunks must all be byte strings or all text strings")
        major = chunks[0][0] >> 5 if chunks else MAJOR_BYTES
        if any(chunk[0] & 0x1F == 31 for chunk in chunks):
            self.pos = start
            raise self.error("Indefinite string chunks must have definite length")
        return bytes([(major << 5) | 31]) + b"".join(chunks) + bytes([BREAK])

    def quoted(self, quote: str) -> str:
        """Raw body of a quoted literal, with the quotes consumed."""
        self.expect(quote)
        out = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "\\" and self.pos + 1 < len(self.text):
                out.append(self.text[self.pos:self.pos + 2])
                self.pos += 2
                continue
            self.pos += 1
            if ch == quote:
                return "".join(out)
            out.append(ch)
        raise self.error("Unterminated string")

    def text_string(self) -> bytes:
        start = self.pos
        body = self.quoted('"')
        try:
            decoded = json.loads('"{}"'.format(body))
        except ValueError as e:
            self.pos = start
            raise self.error("Invalid text string: {}".format(e)) from e
        try:
            data = decoded.encode("utf-8")
        except UnicodeEncodeError as e:
            self.pos = start
            raise self.error("Text string is not valid Unicode") from e
        return encode_head(MAJOR_TEXT, len(data)) + data

    def byte_string(self, data: bytes) -> bytes:
        return encode_head(MAJOR_BYTES, len(data)) + data

    def hex_literal(self, body: str) -> bytes:
        digits = "".join(body.split())
        try:
            return bytes.fromhex(digits)
        except ValueError as e:
            raise self.error("Invalid hex byte string h'{}'".format(body)) from e

    def b64_literal(self, body: str) -> bytes:
        digits = "".join(body.split()).replace("-", "+").replace("_", "/")
        digits += "=" * (-len(digits) % 4)
        try:
            return base64.b64decode(digits, validate=True)
        except (binascii.Error, ValueError) as e:
            raise self.error("Invalid base64 byte string b64'{}'".format(body)) from e

    def number(self) -> bytes:
        self.skip_space()
        if self.text.startswith("-Infinity", self.pos):
            self.pos += len("-Infinity")
            return bytes.fromhex("f9fc00")
        match = _NUMBER_RE.match(self.text, self.pos)
        if match is None:
            raise self.error("Invalid number")
        token = match.group(0)
        self.pos = match.end()
        if any(c in token for c in ".eE"):
            return encode_float(float(token))
        value = int(token)
        if self.text.startswith("(", self.pos):
            if value < 0:
                raise self.error("Tag numbers cannot be negative")
            self.pos += 1
            inner = self.item()
            self.expect(")")
            return encode_head(MAJOR_TAG, value) + inner
        if value >= 0:
            return encode_head(MAJOR_UNSIGNED, value)
        return encode_head(MAJOR_NEGATIVE, -1 - value)

    def word(self) -> bytes:
        match = _WORD_RE.match(self.text, self.pos)
        if match is None:
            raise self.error("Unexpected character {!r}".format(self.text[self.pos]))
        word = match.group(0)
        self.pos = match.end()
        if word in _LITERALS:
            return _LITERALS[word]
        if word == "simple":
            self.expect("(")
            self.skip_space()
            digits = re.match(r"\d+", self.text[self.pos:])
            if digits is None:
                raise self.error("Expected a simple value number")
            self.pos += digits.end()
            self.expect(")")
            value = int(digits.group(0))
            if value < 24:
                return bytes([(MAJOR_SIMPLE << 5) | value])
            if 32 <= value <= 255:
                return bytes([(MAJOR_SIMPLE << 5) | 24, value])
            raise self.error("simple({}) is not a valid simple value".format(value))
        self.pos = match.start()
        raise self.error("Unknown keyword {!r}".format(word))


def parse_diagnostic(text: str) -> bytes:
    """Encode diagnostic notation text as exactly one CBOR data item."""
    parser = _Parser(text)
    if not parser.peek():
        raise CodecError("Diagnostic notation is empty")
    data = parser.item()
    if parser.peek():
        raise parser.error("Unexpected trailing input")
    return data


def looks_like_diagnostic(text: str) -> bool:
    """Cheap check for markers only diagnostic notation uses."""
    trimmed = text.strip()
    if not trimmed:
        return False
    if any(token in trimmed for token in _INDICATORS):
        return True
    return bool(_TAG_START_RE.match(trimmed))
