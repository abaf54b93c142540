"""Annotated hex listing view.

WHY: When an encoder produces the wrong bytes, you need to see which
header byte means what. This view lists every CBOR header on its own line
with a comment naming the item, indented by nesting depth.

HOW: Walks the payload with cbor_items.parse_items(). Each item yields a
line ``<hex>  # <description>``; string content gets its own line below
the header. The hex column is padded so the comments line up.

RULES:
- Hex is indented three spaces per nesting level
- Comments are indented two spaces per nesting level
- Indefinite containers end with an ``ff  # break`` line
- Media type: "text/plain"
"""

from __future__ import annotations

import json
from typing import Any, List, Tuple

from ur_playground.formatters.base import BaseFormatter, FormatterOutput
from ur_playground.formatters.cbor_items import (
    MAJOR_ARRAY,
    MAJOR_BYTES,
    MAJOR_MAP,
    MAJOR_NEGATIVE,
    MAJOR_TAG,
    MAJOR_TEXT,
    MAJOR_UNSIGNED,
    CborItem,
    parse_items,
)
from ur_playground.formatters.diagnostic import diagnose

_TYPE_NAMES = {
    MAJOR_BYTES: "bytes",
    MAJOR_TEXT: "text",
    MAJOR_ARRAY: "array",
    MAJOR_MAP: "map",
}


def _describe(item: CborItem) -> str:
    if item.major == MAJOR_UNSIGNED:
        return "unsigned({})".format(item.arg)
    if item.major == MAJOR_NEGATIVE:
        return "negative({})".format(-1 - item.arg)
    if item.major in _TYPE_NAMES:
        return "{}({})".format(_TYPE_NAMES[item.major], "*" if item.indefinite else item.arg)
    if item.major == MAJOR_TAG:
        return "tag({})".format(item.arg)
    if item.float_value is not None:
        return "float({})".format(diagnose(item))
    return diagnose(item)


def _collect(item: CborItem, depth: int, lines: List[Tuple[str, str]]) -> None:
    hex_indent = "   " * depth
    note_indent = "  " * depth
    lines.append((hex_indent + item.header.hex(), note_indent + _describe(item)))
    if item.content:
        if item.major == MAJOR_TEXT:
            note = json.dumps(item.content.decode("utf-8"), ensure_ascii=False)
        else:
            note = ""
        lines.append((hex_indent + "   " + item.content.hex(), note_indent + "  " + note))
    for child in item.children:
        _collect(child, depth + 1, lines)
    if item.indefinite:
        lines.append((hex_indent + "ff", note_indent + "break"))


def comment(item: CborItem) -> str:
    lines: List[Tuple[str, str]] = []
    _collect(item, 0, lines)
    width = max(len(left) for left, _ in lines)
    return "\n".join("{}  # {}".format(left.ljust(width), right).rstrip() for left, right in lines)


class CommentedFormatter(BaseFormatter):
    """Renders a payload as an annotated hex listing."""

    @property
    def name(self) -> str:
        return "Commented CBOR hex"

    def format(self, value: Any, payload_hex: str) -> FormatterOutput:
        root = parse_items(bytes.fromhex(payload_hex))
        return FormatterOutput(format_tag="decoded-commented", content=comment(root), media_type="text/plain")
