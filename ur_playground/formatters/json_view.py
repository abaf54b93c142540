"""Pretty-printed JSON view (the canonical, editable Decoded form).

WHY: JSON is the one Decoded view users can edit and feed back in to
re-encode a payload, so it is the canonical member of the Decoded family.

HOW: to_jsonable() maps cbor2 output onto JSON types, then json.dumps()
pretty-prints with two-space indentation.

RULES:
- bytes become lowercase hex strings
- Tagged values become {"tag": n, "value": ...}
- Non-string map keys are stringified (JSON objects only have text keys)
- datetime, Decimal, Fraction and UUID values use their string forms
- Media type: "application/json"
"""

from __future__ import annotations

import datetime
import json
import uuid
from collections.abc import Mapping
from decimal import Decimal
from fractions import Fraction
from typing import Any

from cbor2 import CBORSimpleValue, CBORTag, undefined

from ur_playground.formatters.base import BaseFormatter, FormatterOutput


def _key(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return json.dumps(to_jsonable(value), sort_keys=True)


def to_jsonable(value: Any) -> Any:
    """Convert a decoded CBOR value into plain JSON-compatible Python."""
    if value is None or value is undefined:
        return None
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, CBORTag):
        return {"tag": value.tag, "value": to_jsonable(value.value)}
    if isinstance(value, CBORSimpleValue):
        return {"simple": value.value}
    if isinstance(value, Mapping):
        return {_key(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, (Decimal, Fraction, uuid.UUID)):
        return str(value)
    return repr(value)


class JSONFormatter(BaseFormatter):
    """Renders a payload as indented JSON."""

    @property
    def name(self) -> str:
        return "JSON"

    def format(self, value: Any, payload_hex: str) -> FormatterOutput:
        return FormatterOutput(
            format_tag="decoded-json",
            content=json.dumps(to_jsonable(value), indent=2, ensure_ascii=False),
            media_type="application/json",
        )
