"""UR text syntax and the UR-level fragment encoder/decoder.

WHY: The fountain primitives work on bytes; scanners and QR animations
work on strings like ``ur:crypto-psbt/12-40/lpbk...``. This module is the
bridge: it parses and renders UR text and wraps FountainEncoder /
FountainDecoder so they speak UR strings.

HOW: A single-part UR is ``ur:<type>/<bytewords>``; a fragment is
``ur:<type>/<seq>-<count>/<bytewords>`` whose body is a CBOR-encoded
FountainPart. Bodies always use minimal bytewords with CRC32.

RULES:
- Parsing is case-insensitive; rendering is lowercase
- A fragment's "<seq>-<count>" path must agree with its CBOR header
- When the payload fits in one fragment the encoder emits the single-part
  UR for every call
- URFountainDecoder.receive() refuses fragments whose type differs from
  the first accepted one
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ur_playground.codec import bytewords
from ur_playground.codec.fountain import FountainDecoder, FountainEncoder, FountainPart
from ur_playground.core.errors import CodecError
from ur_playground.core.ur import UniformResource, is_valid_ur_type

_SEQ_RE = re.compile(r"^(\d+)-(\d+)$")


@dataclass(frozen=True)
class URText:
    """A syntactically parsed UR string (body not yet decoded)."""

    type: str
    body: str
    seq: Optional[Tuple[int, int]] = None

    @property
    def is_fragment(self) -> bool:
        return self.seq is not None


def split_ur(text: str) -> URText:
    """Split ``ur:<type>[/<seq>-<count>]/<body>`` into its components."""
    s = text.strip().lower()
    if not s.startswith("ur:"):
        raise CodecError("UR must start with 'ur:'")
    components = s[3:].split("/")
    if len(components) not in (2, 3):
        raise CodecError("UR path must have 2 or 3 components, got {}".format(len(components)))

    ur_type = components[0]
    if not is_valid_ur_type(ur_type):
        raise CodecError("Invalid UR type: {!r}".format(ur_type))
    body = components[-1]
    if not body:
        raise CodecError("UR body is empty")

    if len(components) == 2:
        return URText(type=ur_type, body=body)

    match = _SEQ_RE.match(components[1])
    if not match:
        raise CodecError("Invalid sequence component: {!r}".format(components[1]))
    seq_num, seq_len = int(match.group(1)), int(match.group(2))
    if seq_num < 1 or seq_len < 1:
        raise CodecError("Sequence numbers start at 1")
    return URText(type=ur_type, body=body, seq=(seq_num, seq_len))


def decode_single(text: str) -> UniformResource:
    """Parse a single-part UR string."""
    parsed = split_ur(text)
    if parsed.is_fragment:
        raise CodecError("UR is one fragment of a multi-part sequence")
    return UniformResource(parsed.type, bytewords.decode(parsed.body, "minimal"))


def decode_fragment(text: str) -> Tuple[str, FountainPart]:
    """Parse one multi-part fragment into (type, FountainPart)."""
    parsed = split_ur(text)
    if not parsed.is_fragment:
        raise CodecError("UR is not a multi-part fragment")
    part = FountainPart.from_cbor(bytewords.decode_bytes(parsed.body, "minimal"))
    if (part.seq_num, part.seq_len) != parsed.seq:
        raise CodecError("Fragment sequence path does not match its payload header")
    return parsed.type, part


def encode_single(ur_type: str, payload_hex: str) -> str:
    if not is_valid_ur_type(ur_type):
        raise CodecError("Invalid UR type: {!r}".format(ur_type))
    return "ur:{}/{}".format(ur_type, bytewords.encode(payload_hex, "minimal"))


def encode_fragment(ur_type: str, part: FountainPart) -> str:
    return "ur:{}/{}-{}/{}".format(
        ur_type, part.seq_num, part.seq_len, bytewords.encode_bytes(part.to_cbor(), "minimal")
    )


class URFountainEncoder:
    """Fragment generator for one UniformResource."""

    def __init__(
        self,
        ur: UniformResource,
        max_fragment_len: int,
        min_fragment_len: int = 10,
        first_seq_num: int = 0,
    ) -> None:
        if ur.type is None:
            raise CodecError("Cannot fragment an anonymous UR")
        if not ur.payload_hex:
            raise CodecError("Cannot fragment an empty payload")
        self.ur = ur
        self.first_seq_num = first_seq_num
        self._fountain = FountainEncoder(
            ur.payload, max_fragment_len, first_seq_num=first_seq_num, min_fragment_len=min_fragment_len
        )
        self._single = encode_single(ur.type, ur.payload_hex)

    @property
    def pure_fragment_count(self) -> int:
        return self._fountain.seq_len

    @property
    def is_single_part(self) -> bool:
        return self._fountain.seq_len == 1

    @property
    def seq_num(self) -> int:
        return self._fountain.seq_num

    def fragment_for(self, seq_num: int) -> str:
        if self.is_single_part:
            return self._single
        return encode_fragment(self.ur.type, self._fountain.part_for(seq_num))

    def next_fragment(self) -> str:
        part = self._fountain.next_part()
        if self.is_single_part:
            return self._single
        return encode_fragment(self.ur.type, part)

    def get_all_fragments(self, ratio: float) -> List[str]:
        """Pure fragments once, then ceil(count * ratio) redundancy fragments.

        Pure fragments are numbered 1..count whatever first_seq_num is.
        Redundancy sequence numbers continue after max(first_seq_num, count),
        so the list depends only on the payload and the parameters.
        """
        count = self.pure_fragment_count
        extra = int(math.ceil(count * ratio))
        fragments = [self.fragment_for(seq) for seq in range(1, count + 1)]
        start = max(self.first_seq_num, count)
        fragments.extend(self.fragment_for(start + i) for i in range(1, extra + 1))
        return fragments

    def reset(self) -> None:
        self._fountain.seq_num = self.first_seq_num & 0xFFFFFFFF


class URFountainDecoder:
    """Collects UR strings (single-part or fragments) until one UR is complete."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.expected_type: Optional[str] = None
        self.result: Optional[UniformResource] = None
        self._fountain = FountainDecoder()

    @property
    def started(self) -> bool:
        return self.expected_type is not None

    def receive(self, fragment_text: str) -> bool:
        """Feed one UR string; False when it cannot be applied.

        Raises CodecError for text that is not a well-formed UR.
        """
        parsed = split_ur(fragment_text)
        if self.expected_type is not None and parsed.type != self.expected_type:
            return False
        if self.is_complete():
            return False

        if not parsed.is_fragment:
            if self._fountain.started:
                return False
            self.result = decode_single(fragment_text)
            self.expected_type = parsed.type
            return True

        ur_type, part = decode_fragment(fragment_text)
        if not self._fountain.receive_part(part):
            return False
        self.expected_type = ur_type
        if self._fountain.is_success():
            self.result = UniformResource(ur_type, self._fountain.result.hex())
        return True

    def is_complete(self) -> bool:
        return self.result is not None or self._fountain.is_complete()

    def is_failure(self) -> bool:
        return self._fountain.is_failure()

    def get_assembled_payload_hex(self) -> Optional[str]:
        return self.result.payload_hex if self.result is not None else None

    @property
    def expected_block_count(self) -> int:
        if self.result is not None and not self._fountain.started:
            return 1
        return self._fountain.expected_part_count

    @property
    def seen_blocks(self) -> List[int]:
        if self.result is not None and not self._fountain.started:
            return [1]
        seen = self._fountain.seen_part_indexes
        return [1 if i in seen else 0 for i in range(self.expected_block_count)]

    @property
    def decoded_blocks(self) -> List[int]:
        if self.result is not None and not self._fountain.started:
            return [1]
        decoded = self._fountain.received_part_indexes
        return [1 if i in decoded else 0 for i in range(self.expected_block_count)]

    @property
    def last_block_indexes(self) -> List[int]:
        indexes = self._fountain.last_part_indexes
        return sorted(indexes) if indexes is not None else []
