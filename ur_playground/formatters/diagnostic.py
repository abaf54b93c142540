"""CBOR diagnostic notation view (RFC 8949 section 8).

WHY: Diagnostic notation shows exactly what was encoded, including tags,
byte strings and indefinite lengths, which JSON cannot express. It is
the view protocol developers compare against published test vectors.

HOW: Walks the raw payload with cbor_items.parse_items() and prints each
item: integers as numbers, byte strings as h'..', text as JSON strings,
tags as ``n(item)``, indefinite containers with a leading underscore.

RULES:
- Reads the payload hex, never the decoded Python value
- Floats print NaN / Infinity / -Infinity per RFC 8949
- Simple values other than false/true/null/undefined print as simple(n)
- Media type: "application/cbor-diagnostic"
"""

from __future__ import annotations

import json
import math
from typing import Any

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

_SIMPLE_NAMES = {20: "false", 21: "true", 22: "null", 23: "undefined"}


def _float_text(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return repr(value)


def diagnose(item: CborItem) -> str:
    """Diagnostic notation for one parsed item."""
    major = item.major
    if major == MAJOR_UNSIGNED:
        return str(item.arg)
    if major == MAJOR_NEGATIVE:
        return str(-1 - item.arg)
    if major == MAJOR_BYTES:
        if item.indefinite:
            return "(_ {})".format(", ".join(diagnose(c) for c in item.children))
        return "h'{}'".format(item.content.hex())
    if major == MAJOR_TEXT:
        if item.indefinite:
            return "(_ {})".format(", ".join(diagnose(c) for c in item.children))
        return json.dumps(item.content.decode("utf-8"), ensure_ascii=False)
    if major == MAJOR_ARRAY:
        prefix = "_ " if item.indefinite else ""
        return "[{}{}]".format(prefix, ", ".join(diagnose(c) for c in item.children))
    if major == MAJOR_MAP:
        prefix = "_ " if item.indefinite else ""
        pairs = [
            "{}: {}".format(diagnose(item.children[i]), diagnose(item.children[i + 1]))
            for i in range(0, len(item.children), 2)
        ]
        return "{{{}{}}}".format(prefix, ", ".join(pairs))
    if major == MAJOR_TAG:
        return "{}({})".format(item.arg, diagnose(item.children[0]))
    if item.float_value is not None:
        return _float_text(item.float_value)
    return _SIMPLE_NAMES.get(item.arg, "simple({})".format(item.arg))


class DiagnosticFormatter(BaseFormatter):
    """Renders a payload in CBOR diagnostic notation."""

    @property
    def name(self) -> str:
        return "CBOR diagnostic notation"

    def format(self, value: Any, payload_hex: str) -> FormatterOutput:
        root = parse_items(bytes.fromhex(payload_hex))
        return FormatterOutput(
            format_tag="decoded-diagnostic",
            content=diagnose(root),
            media_type="application/cbor-diagnostic",
        )
