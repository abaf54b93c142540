"""Shared test fixtures for the ur_playground test suite.

WHY: Most test modules need the same codec gateway, the same sample
payloads and a controllable clock. Centralizing them keeps every module
working from identical, known-good inputs.

HOW: Pytest fixtures build payloads through the real DefaultCodecGateway
so fixtures never hard-code encoder output. FakeClock replaces
time.time() / time.monotonic() wherever a component takes a ``clock``.

RULES:
- SAMPLE_MAP_HEX is the CBOR map {"id": 123, "name": "John Doe"}
- two_part_ur is a 40-byte payload that splits into exactly 2 blocks at
  max 30 / min 10
- four_block_ur is a 102-byte payload that splits into exactly 4 blocks
  at max 30 / min 10
"""

from __future__ import annotations

import pytest

from ur_playground.codec import DefaultCodecGateway
from ur_playground.core.sequencer import Finite, FountainSequencer, GenerationConfig
from ur_playground.core.ur import UniformResource

# {"id": 123, "name": "John Doe"}
SAMPLE_MAP_HEX = "a2626964187b646e616d65684a6f686e20446f65"

# 16-byte UUID body under tag 37
SAMPLE_UUID_BYTES = bytes(range(16))


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def gateway():
    return DefaultCodecGateway()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_map_hex():
    return SAMPLE_MAP_HEX


@pytest.fixture
def two_part_ur(gateway):
    """bytes-typed UR whose CBOR payload is 40 bytes (2 blocks)."""
    return UniformResource("bytes", gateway.encode_value_to_hex(bytes(range(38))))


@pytest.fixture
def four_block_ur(gateway):
    """bytes-typed UR whose CBOR payload is 102 bytes (4 blocks)."""
    return UniformResource("bytes", gateway.encode_value_to_hex(bytes(range(100))))


@pytest.fixture
def small_config():
    """max 30 / min 10, pure fragments only."""
    return GenerationConfig(max_fragment_len=30, min_fragment_len=10, first_seq_num=0, redundancy=Finite(0))


@pytest.fixture
def pure_fragments(four_block_ur, small_config, gateway):
    """The four pure fragments of four_block_ur."""
    return FountainSequencer(four_block_ur, small_config, gateway).get_all_fragments()
