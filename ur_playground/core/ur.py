"""UniformResource value type and UR type-name rules.

WHY: Every stage of the playground (conversion, assembly, generation)
passes the same (type, payload) pair around. Keeping it immutable and
validated at construction means nothing downstream has to re-check it.

HOW: UniformResource is a frozen dataclass holding the type name and the
lowercase hex of the CBOR payload. The type pattern and the sanitizer used
for user-supplied type overrides live next to it.

RULES:
- type matches ^[a-z0-9]+(-[a-z0-9]+)*$ or is None (anonymous payload)
- payload_hex is lowercase, even-length hex
- Instances are produced by the codec gateway (parse/encode), not by hand
  in core code
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ur_playground.core.errors import CodecError

UR_TYPE_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

_HEX_RE = re.compile(r"^[0-9a-f]*$")


def is_valid_ur_type(value: Optional[str]) -> bool:
    """True if ``value`` is a well-formed UR type name."""
    return bool(value) and UR_TYPE_RE.match(value) is not None


def sanitize_ur_type(value: Optional[str]) -> str:
    """Coerce free-form user text into the UR type alphabet.

    Lowercases, turns whitespace runs into hyphens, drops anything outside
    a-z/0-9/-, collapses repeated hyphens and trims leading/trailing ones.
    May return an empty string.
    """
    if not value:
        return ""
    v = value.lower()
    v = re.sub(r"\s+", "-", v)
    v = re.sub(r"[^a-z0-9-]+", "", v)
    v = re.sub(r"-{2,}", "-", v)
    return v.strip("-")


@dataclass(frozen=True)
class UniformResource:
    """A typed CBOR payload.

    Attributes:
        type: UR type name, e.g. ``"crypto-seed"``; None for anonymous payloads.
        payload_hex: CBOR payload as lowercase hex.
    """

    type: Optional[str]
    payload_hex: str

    def __post_init__(self) -> None:
        if self.type is not None and not is_valid_ur_type(self.type):
            raise CodecError("Invalid UR type: {!r}".format(self.type))
        normalized = self.payload_hex.lower()
        if len(normalized) % 2 or not _HEX_RE.match(normalized):
            raise CodecError("UR payload is not valid hex")
        object.__setattr__(self, "payload_hex", normalized)

    @property
    def payload(self) -> bytes:
        return bytes.fromhex(self.payload_hex)
