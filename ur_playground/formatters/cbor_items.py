"""Byte-level CBOR item walker for the diagnostic and commented views.

WHY: cbor2 decodes straight to Python values and throws away what the
encoding looked like (indefinite lengths, float widths, header bytes).
The diagnostic and commented views need exactly that, so they walk the
raw bytes themselves.

HOW: parse_items() reads one top-level data item into a tree of CborItem
nodes. Each node keeps its offset, header bytes, major type and argument;
string nodes keep their content, containers keep their children.

RULES:
- Supports all eight major types, definite and indefinite lengths,
  half/single/double floats and simple values
- Trailing bytes after the first item are an error
- Raises CodecError on truncated or malformed input
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import List, Optional

from ur_playground.core.errors import CodecError

BREAK = 0xFF

MAJOR_UNSIGNED = 0
MAJOR_NEGATIVE = 1
MAJOR_BYTES = 2
MAJOR_TEXT = 3
MAJOR_ARRAY = 4
MAJOR_MAP = 5
MAJOR_TAG = 6
MAJOR_SIMPLE = 7


@dataclass
class CborItem:
    """One data item as it appears on the wire.

    Attributes:
        offset: Position of the first header byte.
        header: The initial byte plus any argument bytes.
        major: CBOR major type (0-7).
        info: The 5-bit additional information field.
        arg: Decoded argument (length, count, tag, value); None when indefinite.
        content: Payload of a definite byte or text string.
        children: Chunks, elements, map keys/values or the tagged item.
        float_value: Decoded value for major type 7 floats.
    """

    offset: int
    header: bytes
    major: int
    info: int
    arg: Optional[int]
    content: bytes = b""
    children: List["CborItem"] = field(default_factory=list)
    float_value: Optional[float] = None

    @property
    def indefinite(self) -> bool:
        return self.arg is None and self.major in (MAJOR_BYTES, MAJOR_TEXT, MAJOR_ARRAY, MAJOR_MAP)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise CodecError("CBOR data truncated at offset {}".format(self.pos))
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def peek(self) -> int:
        if self.pos >= len(self.data):
            raise CodecError("CBOR data truncated at offset {}".format(self.pos))
        return self.data[self.pos]


_ARG_WIDTHS = {24: 1, 25: 2, 26: 4, 27: 8}


def _read_item(reader: _Reader) -> CborItem:
    offset = reader.pos
    initial = reader.take(1)[0]
    major, info = initial >> 5, initial & 0x1F

    if info < 24:
        arg: Optional[int] = info
        extra = b""
    elif info in _ARG_WIDTHS:
        extra = reader.take(_ARG_WIDTHS[info])
        arg = int.from_bytes(extra, "big")
    elif info == 31 and major in (MAJOR_BYTES, MAJOR_TEXT, MAJOR_ARRAY, MAJOR_MAP):
        arg, extra = None, b""
    else:
        raise CodecError("Invalid additional information {} at offset {}".format(info, offset))

    item = CborItem(offset=offset, header=bytes([initial]) + extra, major=major, info=info, arg=arg)

    if major in (MAJOR_BYTES, MAJOR_TEXT):
        if arg is None:
            while reader.peek() != BREAK:
                chunk = _read_item(reader)
                if chunk.major != major or chunk.indefinite:
                    raise CodecError("Invalid chunk in indefinite-length string at offset {}".format(chunk.offset))
                item.children.append(chunk)
            reader.take(1)
        else:
            item.content = reader.take(arg)
            if major == MAJOR_TEXT:
                try:
                    item.content.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise CodecError("Invalid UTF-8 in text string at offset {}".format(offset)) from e
    elif major in (MAJOR_ARRAY, MAJOR_MAP):
        per_entry = 2 if major == MAJOR_MAP else 1
        if arg is None:
            while reader.peek() != BREAK:
                for _ in range(per_entry):
                    item.children.append(_read_item(reader))
            reader.take(1)
        else:
            for _ in range(arg * per_entry):
                item.children.append(_read_item(reader))
    elif major == MAJOR_TAG:
        item.children.append(_read_item(reader))
    elif major == MAJOR_SIMPLE:
        if info == 25:
            item.float_value = struct.unpack(">e", extra)[0]
        elif info == 26:
            item.float_value = struct.unpack(">f", extra)[0]
        elif info == 27:
            item.float_value = struct.unpack(">d", extra)[0]
    return item


def parse_items(data: bytes) -> CborItem:
    """Parse exactly one top-level CBOR data item."""
    if not data:
        raise CodecError("CBOR payload is empty")
    reader = _Reader(data)
    root = _read_item(reader)
    if reader.pos != len(data):
        raise CodecError("{} trailing bytes after CBOR item".format(len(data) - reader.pos))
    return root
