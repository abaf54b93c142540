"""Fountain-code primitives: fragment encoder, fragment decoder, PRNG.

WHY: A multi-part UR splits a message into fixed-length fragments and
streams "parts" that are either one fragment (pure) or the XOR of several
(mixed). Any sufficient subset of parts reconstructs the message, so a
scanner can join a looping QR animation at any point.

HOW: The part for sequence number ``n`` is fully determined by
(n, fragment count, message checksum): the first ``seq_len`` parts are the
fragments in order, later ones are chosen by a Xoshiro256** generator
seeded from SHA-256(n || checksum), with degree drawn from a 1/k soliton
distribution via Vose's alias method. The decoder peels mixed parts by
XOR-ing out fragments it already knows.

RULES:
- Part wire format is the CBOR array [seq_num, seq_len, message_len,
  checksum, data]
- Fragments are zero-padded to the nominal fragment length
- Sequence numbers are 32-bit and wrap
- The decoder only ever adds fragments to ``received_part_indexes`` (the
  decoded set never shrinks until reset())
- The reassembled message is checked against the CRC32 from the parts
"""

from __future__ import annotations

import hashlib
import math
import struct
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Set

import cbor2

from ur_playground.codec.bytewords import crc32
from ur_playground.core.errors import CodecError

_MASK64 = 0xFFFFFFFFFFFFFFFF


# ---------------------------------------------------------------------------
# Pseudo-random generation
# ---------------------------------------------------------------------------


def _rotl(x: int, k: int) -> int:
    return ((x << k) | (x >> (64 - k))) & _MASK64


class Xoshiro256:
    """Xoshiro256** seeded from the SHA-256 digest of a byte string."""

    def __init__(self, seed: bytes) -> None:
        digest = hashlib.sha256(seed).digest()
        self.s = [struct.unpack(">Q", digest[i * 8:(i + 1) * 8])[0] for i in range(4)]

    def next(self) -> int:
        s = self.s
        result = (_rotl((s[1] * 5) & _MASK64, 7) * 9) & _MASK64
        t = (s[1] << 17) & _MASK64

        s[2] ^= s[0]
        s[3] ^= s[1]
        s[1] ^= s[2]
        s[0] ^= s[3]

        s[2] ^= t
        s[3] = _rotl(s[3], 45)
        return result

    def next_double(self) -> float:
        return self.next() / float(_MASK64 + 1)

    def next_int(self, low: int, high: int) -> int:
        return int(self.next_double() * (high - low + 1)) + low


class RandomSampler:
    """Walker/Vose alias sampler over a fixed discrete distribution."""

    def __init__(self, probs: List[float]) -> None:
        if any(p <= 0 for p in probs):
            raise ValueError("Sampler probabilities must be positive")
        total = sum(probs)
        n = len(probs)
        scaled = [p * n / total for p in probs]

        small: List[int] = []
        large: List[int] = []
        for i in range(n - 1, -1, -1):
            if scaled[i] < 1:
                small.append(i)
            else:
                large.append(i)

        self.probs = [0.0] * n
        self.aliases = [0] * n

        while small and large:
            a = small.pop()
            g = large.pop()
            self.probs[a] = scaled[a]
            self.aliases[a] = g
            scaled[g] += scaled[a] - 1
            if scaled[g] < 1:
                small.append(g)
            else:
                large.append(g)

        while large:
            self.probs[large.pop()] = 1.0
        while small:
            self.probs[small.pop()] = 1.0

    def next(self, rng: Callable[[], float]) -> int:
        r1 = rng()
        r2 = rng()
        i = int(len(self.probs) * r1)
        return i if r2 < self.probs[i] else self.aliases[i]


def _shuffled(items: List[int], rng: Xoshiro256) -> List[int]:
    remaining = list(items)
    result: List[int] = []
    while remaining:
        index = rng.next_int(0, len(remaining) - 1)
        result.append(remaining.pop(index))
    return result


def choose_fragments(seq_num: int, seq_len: int, checksum: int) -> FrozenSet[int]:
    """Indexes of the fragments XOR-ed into part ``seq_num``."""
    if seq_num <= seq_len:
        return frozenset({seq_num - 1})

    seed = struct.pack(">II", seq_num & 0xFFFFFFFF, checksum & 0xFFFFFFFF)
    rng = Xoshiro256(seed)
    sampler = RandomSampler([1.0 / (i + 1) for i in range(seq_len)])
    degree = sampler.next(rng.next_double) + 1
    indexes = _shuffled(list(range(seq_len)), rng)
    return frozenset(indexes[:degree])


# ---------------------------------------------------------------------------
# Fragmentation helpers
# ---------------------------------------------------------------------------


def find_nominal_fragment_length(message_len: int, min_fragment_len: int, max_fragment_len: int) -> int:
    """Smallest fragment count whose even split fits ``max_fragment_len``."""
    if message_len <= 0:
        raise CodecError("Cannot fragment an empty message")
    max_fragment_count = message_len // min_fragment_len
    if max_fragment_count == 0:
        return message_len

    fragment_len = message_len
    for fragment_count in range(1, max_fragment_count + 1):
        fragment_len = int(math.ceil(message_len / fragment_count))
        if fragment_len <= max_fragment_len:
            break
    return fragment_len


def partition_message(message: bytes, fragment_len: int) -> List[bytes]:
    fragments = []
    for start in range(0, len(message), fragment_len):
        chunk = message[start:start + fragment_len]
        fragments.append(chunk + b"\x00" * (fragment_len - len(chunk)))
    return fragments


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


# ---------------------------------------------------------------------------
# Parts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FountainPart:
    """One encoded part as it travels on the wire."""

    seq_num: int
    seq_len: int
    message_len: int
    checksum: int
    data: bytes

    def to_cbor(self) -> bytes:
        return cbor2.dumps([self.seq_num, self.seq_len, self.message_len, self.checksum, self.data])

    @classmethod
    def from_cbor(cls, raw: bytes) -> "FountainPart":
        try:
            value = cbor2.loads(raw)
        except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
            raise CodecError("Invalid fountain part CBOR: {}".format(e)) from e

        if not isinstance(value, (list, tuple)) or len(value) != 5:
            raise CodecError("Fountain part must be a 5-element CBOR array")
        seq_num, seq_len, message_len, checksum, data = value
        for field_value in (seq_num, seq_len, message_len, checksum):
            if not isinstance(field_value, int) or isinstance(field_value, bool) or field_value < 0:
                raise CodecError("Fountain part header fields must be unsigned integers")
        if not isinstance(data, bytes):
            raise CodecError("Fountain part data must be a byte string")
        if seq_len == 0 or message_len == 0:
            raise CodecError("Fountain part declares an empty message")
        return cls(seq_num, seq_len, message_len, checksum, data)


class FountainEncoder:
    """Produces parts for a message, pure first, then mixed forever."""

    def __init__(
        self,
        message: bytes,
        max_fragment_len: int,
        first_seq_num: int = 0,
        min_fragment_len: int = 10,
    ) -> None:
        self.message_len = len(message)
        self.checksum = crc32(message)
        self.fragment_len = find_nominal_fragment_length(
            self.message_len, min_fragment_len, max_fragment_len
        )
        self.fragments = partition_message(message, self.fragment_len)
        self.seq_num = first_seq_num & 0xFFFFFFFF

    @property
    def seq_len(self) -> int:
        return len(self.fragments)

    def part_for(self, seq_num: int) -> FountainPart:
        """The part with sequence number ``seq_num`` (does not move the cursor)."""
        indexes = choose_fragments(seq_num, self.seq_len, self.checksum)
        data = b"\x00" * self.fragment_len
        for index in sorted(indexes):
            data = _xor(data, self.fragments[index])
        return FountainPart(seq_num, self.seq_len, self.message_len, self.checksum, data)

    def next_part(self) -> FountainPart:
        self.seq_num = (self.seq_num + 1) & 0xFFFFFFFF
        return self.part_for(self.seq_num)


class FountainDecoder:
    """Reassembles a message from parts received in any order."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.received_part_indexes: Set[int] = set()
        self.seen_part_indexes: Set[int] = set()
        self.last_part_indexes: Optional[FrozenSet[int]] = None
        self.processed_parts_count = 0
        self.result: Optional[bytes] = None
        self.error: Optional[str] = None
        self.expected_part_indexes: Optional[FrozenSet[int]] = None
        self.expected_fragment_len: Optional[int] = None
        self.expected_message_len: Optional[int] = None
        self.expected_checksum: Optional[int] = None
        self._simple_parts: Dict[int, bytes] = {}
        self._mixed_parts: Dict[FrozenSet[int], bytes] = {}
        self._queue: List[tuple] = []

    @property
    def started(self) -> bool:
        return self.expected_part_indexes is not None

    @property
    def expected_part_count(self) -> int:
        return len(self.expected_part_indexes) if self.expected_part_indexes is not None else 0

    def is_success(self) -> bool:
        return self.result is not None

    def is_failure(self) -> bool:
        return self.error is not None

    def is_complete(self) -> bool:
        return self.is_success() or self.is_failure()

    def receive_part(self, part: FountainPart) -> bool:
        """Feed one part; False if it is inconsistent or decoding already ended."""
        if self.is_complete():
            return False
        if not self._validate(part):
            return False

        indexes = choose_fragments(part.seq_num, part.seq_len, part.checksum)
        self.last_part_indexes = indexes
        self.seen_part_indexes.update(indexes)
        self._queue.append((indexes, part.data))
        while not self.is_complete() and self._queue:
            indexes, data = self._queue.pop(0)
            if len(indexes) == 1:
                self._process_simple(indexes, data)
            else:
                self._process_mixed(indexes, data)
        self.processed_parts_count += 1
        return True

    def _validate(self, part: FountainPart) -> bool:
        if self.expected_part_indexes is None:
            self.expected_part_indexes = frozenset(range(part.seq_len))
            self.expected_message_len = part.message_len
            self.expected_checksum = part.checksum
            self.expected_fragment_len = len(part.data)
            return True
        return (
            part.seq_len == self.expected_part_count
            and part.message_len == self.expected_message_len
            and part.checksum == self.expected_checksum
            and len(part.data) == self.expected_fragment_len
        )

    def _process_simple(self, indexes: FrozenSet[int], data: bytes) -> None:
        index = next(iter(indexes))
        if index in self.received_part_indexes:
            return
        self._simple_parts[index] = data
        self.received_part_indexes.add(index)

        if self.received_part_indexes == set(self.expected_part_indexes):
            joined = b"".join(self._simple_parts[i] for i in range(self.expected_part_count))
            message = joined[:self.expected_message_len]
            if crc32(message) == self.expected_checksum:
                self.result = message
            else:
                self.error = "Reassembled message failed checksum"
        else:
            self._reduce_mixed_by(indexes, data)

    def _process_mixed(self, indexes: FrozenSet[int], data: bytes) -> None:
        if indexes in self._mixed_parts:
            return

        for known, known_data in list(self._simple_parts_as_items()) + list(self._mixed_parts.items()):
            indexes, data = self._reduce(indexes, data, known, known_data)

        if len(indexes) == 1:
            self._queue.append((indexes, data))
        else:
            self._reduce_mixed_by(indexes, data)
            self._mixed_parts[indexes] = data

    def _simple_parts_as_items(self):
        for index, data in self._simple_parts.items():
            yield frozenset({index}), data

    def _reduce_mixed_by(self, indexes: FrozenSet[int], data: bytes) -> None:
        remaining: Dict[FrozenSet[int], bytes] = {}
        for mixed_indexes, mixed_data in self._mixed_parts.items():
            reduced_indexes, reduced_data = self._reduce(mixed_indexes, mixed_data, indexes, data)
            if len(reduced_indexes) == 1:
                self._queue.append((reduced_indexes, reduced_data))
            else:
                remaining[reduced_indexes] = reduced_data
        self._mixed_parts = remaining

    @staticmethod
    def _reduce(indexes: FrozenSet[int], data: bytes, by_indexes: FrozenSet[int], by_data: bytes):
        if by_indexes < indexes:
            return indexes - by_indexes, _xor(data, by_data)
        return indexes, data
