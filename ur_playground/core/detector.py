"""Input format detection.

WHY: Users paste whatever they have (a QR scan, a hex dump, bytewords
read aloud). The converter needs a best guess of the format before it can
pick a parser, and callers need a cheap way to short-circuit empty input.

HOW: detect_format() runs an ordered list of pattern checks on the
trimmed text; the first match wins. FormatTag also names the ``auto``
pseudo-source and the Decoded family members; decoded-json and
decoded-diagnostic may also be sources.

RULES:
- Order: multi-part UR → single UR → hex → bytewords → diagnostic
  notation → unknown
- Multi-part UR: several non-empty lines that all contain "ur:", or one
  line with a "<n>-<m>" (or "<n>of<m>") sequence component
- Hex: only 0-9a-fA-F and even length
- Bytewords: all whitespace-separated tokens are 4 letters, or one
  lowercase run of even length >= 4 (minimal style)
- Diagnostic notation: a marker only it uses (h'..', simple(, (_, [_,
  {_, <<, or a leading "<n>(" tag) and the whole text parses
- Empty / whitespace-only input → FormatTag.EMPTY, never an exception
- Pure: no I/O, no state
"""

from __future__ import annotations

import enum
import re

from ur_playground.core.errors import CodecError
from ur_playground.formatters.diagnostic_parser import looks_like_diagnostic, parse_diagnostic

_MULTIPART_LINE_RE = re.compile(r"^ur:[a-z0-9-]+/\d+(?:-|of)\d+/", re.IGNORECASE)
_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_BYTEWORD_RE = re.compile(r"^[a-z]{4}$")
_MINIMAL_RE = re.compile(r"^[a-z]+$")
_ALIASES = {"diagnostic": "decoded-diagnostic"}


class FormatTag(str, enum.Enum):
    """Formats the converter can read or write.

    Inherits from str so values serialize cleanly and compare with the
    plain strings used by the CLI.
    """

    AUTO = "auto"
    MULTI_UR = "multiur"
    UR = "ur"
    HEX = "hex"
    BYTEWORDS = "bytewords"
    DECODED_JSON = "decoded-json"
    DECODED_DIAGNOSTIC = "decoded-diagnostic"
    DECODED_PYTHON = "decoded-python"
    DECODED_COMMENTED = "decoded-commented"
    UNKNOWN = "unknown"
    EMPTY = "empty"

    @property
    def is_decoded(self) -> bool:
        return self.value.startswith("decoded-")


DECODED_FORMATS = tuple(tag for tag in FormatTag if tag.is_decoded)
CANONICAL_DECODED = FormatTag.DECODED_JSON


def detect_format(text: str) -> FormatTag:
    """Classify raw text into a FormatTag."""
    trimmed = text.strip()
    if not trimmed:
        return FormatTag.EMPTY

    lowered = trimmed.lower()

    if "\n" in trimmed and "ur:" in lowered:
        lines = [line.strip() for line in lowered.split("\n") if line.strip()]
        if len(lines) > 1 and all("ur:" in line for line in lines):
            return FormatTag.MULTI_UR

    if _MULTIPART_LINE_RE.match(trimmed):
        return FormatTag.MULTI_UR

    if lowered.startswith("ur:"):
        return FormatTag.UR

    if _HEX_RE.match(trimmed) and len(trimmed) % 2 == 0:
        return FormatTag.HEX

    words = lowered.split()
    if words and all(_BYTEWORD_RE.match(w) for w in words):
        return FormatTag.BYTEWORDS
    if _MINIMAL_RE.match(trimmed) and len(trimmed) % 2 == 0 and len(trimmed) >= 4:
        return FormatTag.BYTEWORDS

    if looks_like_diagnostic(trimmed):
        try:
            parse_diagnostic(trimmed)
        except CodecError:
            return FormatTag.UNKNOWN
        return FormatTag.DECODED_DIAGNOSTIC

    return FormatTag.UNKNOWN


def parse_format(value: "str | FormatTag") -> FormatTag:
    """Coerce a CLI/user string into a FormatTag (ValueError if unknown).

    "diagnostic" is accepted as an alias for "decoded-diagnostic".
    """
    if isinstance(value, FormatTag):
        return value
    key = value.strip().lower()
    return FormatTag(_ALIASES.get(key, key))
