"""Encode-side fragment generation.

WHY: To show a large UR as an animated QR code, its payload is split into
fountain fragments. Short animations loop a fixed list with some extra
mixed fragments; long-running displays stream fresh fragments forever so
a scanner that joins late still finishes.

HOW: GenerationConfig holds the fragment lengths, the first sequence
number and a redundancy mode: Finite(ratio) or Infinite.
FountainSequencer validates the config, asks the CodecGateway for an
encoder and then either materializes the whole finite list up front or
hands out fragments lazily from the encoder's cursor.

Block membership (which original blocks a fragment mixes) is not exposed
by the encoder. It is read back by feeding the fragment to a fresh
FountainAssembler and looking at its seen blocks.

RULES:
- 0 < min_fragment_len < max_fragment_len, else ParameterValidationError
  before any fragment exists
- Finite mode: pure fragments first, then ceil(blocks * ratio) mixed
  fragments; identical inputs give an identical list
- Infinite mode never materializes a list
- A redundancy ratio of -1 (config.INFINITE_RATIO_SENTINEL) means Infinite
- Payloads that fit one fragment produce the single-part UR every time
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import jsonschema

from ur_playground import config
from ur_playground.codec.gateway import CodecGateway, FragmentEncoder
from ur_playground.core.assembler import FountainAssembler
from ur_playground.core.errors import CodecError, ParameterValidationError
from ur_playground.core.events import EventEmitter
from ur_playground.core.ur import UniformResource
from ur_playground.schemas import load_schema

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


@dataclass(frozen=True)
class Finite:
    """Pure fragments followed by ``ratio`` passes of mixed fragments."""

    ratio: float


@dataclass(frozen=True)
class Infinite:
    """Unbounded stream of fragments."""


RedundancyMode = Union[Finite, Infinite]


def redundancy_from_ratio(ratio: float) -> RedundancyMode:
    """Map a user-facing ratio to a mode; the sentinel -1 selects Infinite."""
    if ratio == config.INFINITE_RATIO_SENTINEL:
        return Infinite()
    return Finite(float(ratio))


def _default_redundancy() -> RedundancyMode:
    return redundancy_from_ratio(config.DEFAULT_REDUNDANCY_RATIO)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class GenerationConfig:
    """Fragment generation parameters.

    Construction does not validate; FountainSequencer calls validate()
    before doing anything else.

    first_seq_num does not renumber the pure fragments of a Finite run:
    those are always 1..count so any receiver can rebuild the message
    from them alone. It sets where the redundancy fragments start
    (after max(first_seq_num, count)) and the number an Infinite stream
    counts up from, so its first fragment is first_seq_num + 1.
    """

    max_fragment_len: int = config.DEFAULT_MAX_FRAGMENT_LEN
    min_fragment_len: int = config.DEFAULT_MIN_FRAGMENT_LEN
    first_seq_num: int = config.DEFAULT_FIRST_SEQ_NUM
    redundancy: RedundancyMode = field(default_factory=_default_redundancy)

    @property
    def is_infinite(self) -> bool:
        return isinstance(self.redundancy, Infinite)

    @property
    def redundancy_ratio(self) -> float:
        if isinstance(self.redundancy, Finite):
            return self.redundancy.ratio
        return float(config.INFINITE_RATIO_SENTINEL)

    def validate(self) -> None:
        if not _is_int(self.max_fragment_len) or not _is_int(self.min_fragment_len):
            raise ParameterValidationError("Fragment lengths must be integers")
        if self.min_fragment_len <= 0 or self.max_fragment_len <= 0:
            raise ParameterValidationError("Fragment lengths must be positive")
        if self.min_fragment_len >= self.max_fragment_len:
            raise ParameterValidationError(
                "min_fragment_len ({}) must be less than max_fragment_len ({})".format(
                    self.min_fragment_len, self.max_fragment_len
                )
            )
        if not _is_int(self.first_seq_num) or self.first_seq_num < 0:
            raise ParameterValidationError("first_seq_num must be a non-negative integer")
        if isinstance(self.redundancy, Finite):
            ratio = self.redundancy.ratio
            if not isinstance(ratio, (int, float)) or not math.isfinite(ratio) or ratio < 0:
                raise ParameterValidationError("Redundancy ratio must be >= 0 (or -1 for infinite)")
        elif not isinstance(self.redundancy, Infinite):
            raise ParameterValidationError("Unknown redundancy mode: {!r}".format(self.redundancy))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_fragment_len": self.max_fragment_len,
            "min_fragment_len": self.min_fragment_len,
            "first_seq_num": self.first_seq_num,
            "redundancy_ratio": self.redundancy_ratio,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GenerationConfig":
        """Build and validate a config from a plain mapping.

        Missing keys fall back to the config defaults. The mapping is
        checked against ``generation_config.schema.json`` first.

        Raises:
            ParameterValidationError: On schema or range violations.
        """
        values = dict(data)
        try:
            jsonschema.validate(instance=values, schema=load_schema("generation_config"))
        except jsonschema.ValidationError as e:
            raise ParameterValidationError(e.message) from e

        built = cls(
            max_fragment_len=values.get("max_fragment_len", config.DEFAULT_MAX_FRAGMENT_LEN),
            min_fragment_len=values.get("min_fragment_len", config.DEFAULT_MIN_FRAGMENT_LEN),
            first_seq_num=values.get("first_seq_num", config.DEFAULT_FIRST_SEQ_NUM),
            redundancy=redundancy_from_ratio(values.get("redundancy_ratio", config.DEFAULT_REDUNDANCY_RATIO)),
        )
        built.validate()
        return built


def block_indexes(bitmap: Tuple[int, ...]) -> List[int]:
    """Positions of the set bits in a 0/1 bitmap."""
    return [i for i, bit in enumerate(bitmap) if bit]


class FountainSequencer(EventEmitter):
    """Produces the fragments of one UR, as a finite list or an endless stream."""

    def __init__(
        self,
        ur: UniformResource,
        generation_config: Optional[GenerationConfig] = None,
        gateway: Optional[CodecGateway] = None,
    ) -> None:
        super().__init__()
        self.config = generation_config if generation_config is not None else GenerationConfig()
        self.config.validate()
        if ur.type is None:
            raise ParameterValidationError("Cannot generate fragments for an anonymous UR")
        if not ur.payload_hex:
            raise ParameterValidationError("Cannot generate fragments for an empty payload")

        if gateway is None:
            from ur_playground.codec import DefaultCodecGateway

            gateway = DefaultCodecGateway()
        self._gateway = gateway
        self.ur = ur
        self._encoder: FragmentEncoder = gateway.create_encoder(
            ur, self.config.max_fragment_len, self.config.min_fragment_len, self.config.first_seq_num
        )
        self._cursor = 0
        self._fragments: Optional[List[str]] = None
        if isinstance(self.config.redundancy, Finite):
            self._fragments = self._encoder.get_all_fragments(self.config.redundancy.ratio)

        logger.info(
            "Sequencer built for ur:%s: %d blocks, %s",
            ur.type,
            self.get_original_block_count(),
            "infinite" if self.is_infinite else "{} fragments".format(len(self._fragments)),
        )

    @property
    def is_infinite(self) -> bool:
        return self._fragments is None

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def fragment_count(self) -> Optional[int]:
        """Length of the finite list; None in Infinite mode."""
        return len(self._fragments) if self._fragments is not None else None

    def get_original_block_count(self) -> int:
        return self._encoder.pure_fragment_count

    def get_all_fragments(self) -> List[str]:
        if self._fragments is None:
            raise ParameterValidationError("Infinite mode has no finite fragment list")
        return list(self._fragments)

    def fragment_at(self, index: int) -> str:
        """Finite-mode fragment at ``index``, wrapping past the end."""
        if self._fragments is None:
            raise ParameterValidationError("Infinite mode fragments are not indexable")
        return self._fragments[index % len(self._fragments)]

    def next_fragment(self) -> str:
        """Next fragment; loops the list in Finite mode, never repeats in Infinite."""
        if self._fragments is None:
            fragment = self._encoder.next_fragment()
        else:
            fragment = self._fragments[self._cursor % len(self._fragments)]
        self._cursor += 1
        self._emit("fragment", fragment)
        return fragment

    def reset(self) -> None:
        self._cursor = 0
        self._encoder.reset()
        self._emit("reset", None)

    def get_block_membership(self, fragment: str) -> Tuple[int, ...]:
        """0/1 per original block: which blocks ``fragment`` mixes."""
        probe = FountainAssembler(self._gateway)
        probe.receive(fragment)
        return probe.state.seen_blocks

    def manifest(self) -> Dict[str, Any]:
        """JSON-ready description of the finite fragment list.

        Raises:
            ParameterValidationError: In Infinite mode.
            jsonschema.ValidationError: If the document does not conform
                to ``fragment_manifest.schema.json``.
        """
        fragments = self.get_all_fragments()
        doc = {
            "ur_type": self.ur.type,
            "payload_hex": self.ur.payload_hex,
            "original_block_count": self.get_original_block_count(),
            "config": self.config.to_dict(),
            "fragments": [
                {"index": i, "ur": text, "blocks": block_indexes(self.get_block_membership(text))}
                for i, text in enumerate(fragments)
            ],
        }
        jsonschema.validate(instance=doc, schema=load_schema("fragment_manifest"))
        return doc


def parse_generator_input(text: str, gateway: Optional[CodecGateway] = None) -> UniformResource:
    """Turn generator input (a UR or raw hex) into a typed UniformResource.

    Raw hex becomes a ``bytes`` UR whose payload is the CBOR byte string
    of the input.

    Raises:
        ParameterValidationError: For empty, malformed or unsupported input.
    """
    if gateway is None:
        from ur_playground.codec import DefaultCodecGateway

        gateway = DefaultCodecGateway()

    trimmed = text.strip()
    if not trimmed:
        raise ParameterValidationError("Generator input is empty")

    if trimmed.lower().startswith("ur:"):
        try:
            return gateway.parse_ur(trimmed)
        except CodecError as e:
            raise ParameterValidationError("Invalid UR: {}".format(e)) from e

    if _HEX_RE.match(trimmed) and len(trimmed) % 2 == 0:
        payload_hex = gateway.encode_value_to_hex(bytes.fromhex(trimmed))
        return UniformResource(config.RAW_BYTES_UR_TYPE, payload_hex)

    raise ParameterValidationError("Generator input must be a UR or an even-length hex string")
