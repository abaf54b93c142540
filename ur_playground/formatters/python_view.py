"""Native-object view of a decoded payload.

WHY: JSON flattens byte strings and tags into look-alike strings and
objects. This view keeps them distinguishable (``Bytes(0x..)``,
``Tag(n, ...)``) while staying readable, like inspecting the value in a
REPL.

HOW: pretty() recurses through the decoded value, indenting nested
containers two spaces per level.

RULES:
- bytes → Bytes(0x<hex>)
- CBORTag → Tag(<n>, <value>)
- Strings are JSON-quoted; True/False/None print Python-style
- Empty containers print inline ([] / {})
- Display only: this view cannot be parsed back
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from cbor2 import CBORSimpleValue, CBORTag, undefined

from ur_playground.formatters.base import BaseFormatter, FormatterOutput

INDENT = "  "


def pretty(value: Any, indent: int = 0) -> str:
    current = INDENT * indent
    nested = INDENT * (indent + 1)

    if value is undefined:
        return "undefined"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (bytes, bytearray)):
        return "Bytes(0x{})".format(bytes(value).hex())
    if isinstance(value, CBORTag):
        return "Tag({}, {})".format(value.tag, pretty(value.value, indent))
    if isinstance(value, CBORSimpleValue):
        return "Simple({})".format(value.value)
    if isinstance(value, Mapping):
        if not value:
            return "{}"
        pairs = ["{}{}: {}".format(nested, pretty(k, indent + 1), pretty(v, indent + 1)) for k, v in value.items()]
        return "{{\n{}\n{}}}".format(",\n".join(pairs), current)
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        items = ["{}{}".format(nested, pretty(v, indent + 1)) for v in value]
        return "[\n{}\n{}]".format(",\n".join(items), current)
    return repr(value)


class PythonFormatter(BaseFormatter):
    """Renders a payload as an indented native-object listing."""

    @property
    def name(self) -> str:
        return "Python object"

    def format(self, value: Any, payload_hex: str) -> FormatterOutput:
        return FormatterOutput(format_tag="decoded-python", content=pretty(value), media_type="text/plain")
