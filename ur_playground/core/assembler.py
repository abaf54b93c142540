"""Decode-side fountain assembly state machine.

WHY: Animated QR sequences arrive one fragment at a time, in any order,
with duplicates and mixed (XOR-combined) fragments. A scanner needs to
know after every scan whether the fragment was useful, how far along the
reassembly is, and whether someone started showing it a different UR.

HOW: FountainAssembler wraps the codec's fragment decoder primitive. Each
receive() call:
  1. Rejects outright if a mismatch is pending or assembly already finished
  2. Parses the fragment type through the CodecGateway (malformed → Rejected)
  3. Compares it with the established type (different → Mismatch, sticky)
  4. Forwards the fragment to the decoder and copies its seen / decoded
     block bitmaps and expected block count into the AssemblyState
Observers are notified on "progress", "complete", "mismatch" and "reset".

RULES:
- States: Idle → Assembling → {Complete, Mismatch}; only reset() leaves
  Complete or Mismatch
- The type check happens before the decoder sees the fragment, so a
  mismatch never touches the bitmaps
- The established type is set by the first fragment the decoder accepts
- Progress is decoded blocks / expected blocks, never fragments received
- A duplicate fragment is a no-op for decoded blocks and progress
- Single-part URs complete on first receipt
- Not thread-safe: callers serialize receive() calls
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from ur_playground.codec.gateway import CodecGateway, FragmentDecoder
from ur_playground.core.errors import CodecError
from ur_playground.core.events import EventEmitter
from ur_playground.core.ur import UniformResource

logger = logging.getLogger(__name__)


class AssemblerStatus(str, enum.Enum):
    IDLE = "idle"
    ASSEMBLING = "assembling"
    COMPLETE = "complete"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class AssemblyState:
    """Immutable snapshot of one assembly session.

    Attributes:
        status: Current AssemblerStatus.
        established_type: UR type of the first accepted fragment, if any.
        seen_blocks: 0/1 per original block, set once any fragment mixed it in.
        decoded_blocks: 0/1 per original block, set once it is fully resolved.
        expected_block_count: Number of original blocks (0 before the first fragment).
        resolved_payload_hex: Reassembled payload, set exactly once on completion.
    """

    status: AssemblerStatus = AssemblerStatus.IDLE
    established_type: Optional[str] = None
    seen_blocks: Tuple[int, ...] = ()
    decoded_blocks: Tuple[int, ...] = ()
    expected_block_count: int = 0
    resolved_payload_hex: Optional[str] = None

    @property
    def decoded_count(self) -> int:
        return sum(self.decoded_blocks)

    @property
    def seen_count(self) -> int:
        return sum(self.seen_blocks)


@dataclass(frozen=True)
class Accepted:
    """The decoder took the fragment.

    Attributes:
        newly_decoded: How many original blocks this fragment resolved.
        complete: Whether assembly finished with this fragment.
    """

    newly_decoded: int = 0
    complete: bool = False


@dataclass(frozen=True)
class Rejected:
    """The fragment could not be applied; state is unchanged."""

    reason: str
    detail: str = ""


@dataclass(frozen=True)
class MismatchDetected:
    """A well-formed fragment of a different UR type arrived."""

    expected: str
    got: str


ReceiveOutcome = Union[Accepted, Rejected, MismatchDetected]


class FountainAssembler(EventEmitter):
    """Ingests fragments in arbitrary order until one UR is reassembled."""

    def __init__(self, gateway: Optional[CodecGateway] = None) -> None:
        super().__init__()
        if gateway is None:
            from ur_playground.codec import DefaultCodecGateway

            gateway = DefaultCodecGateway()
        self._gateway = gateway
        self._decoder: FragmentDecoder = gateway.create_decoder()
        self._state = AssemblyState()
        self._mismatch: Optional[Tuple[str, str]] = None

    # -- Queries -----------------------------------------------------------

    @property
    def state(self) -> AssemblyState:
        return self._state

    @property
    def status(self) -> AssemblerStatus:
        return self._state.status

    @property
    def mismatch(self) -> Optional[Tuple[str, str]]:
        """(expected, got) while in the Mismatch state."""
        return self._mismatch

    def is_complete(self) -> bool:
        s = self._state
        return (
            s.resolved_payload_hex is not None
            and s.expected_block_count > 0
            and all(s.decoded_blocks[: s.expected_block_count])
        )

    def get_progress(self) -> float:
        s = self._state
        if s.expected_block_count == 0:
            return 0.0
        return s.decoded_count / s.expected_block_count

    def assembled_ur(self) -> Optional[UniformResource]:
        s = self._state
        if s.resolved_payload_hex is None or s.established_type is None:
            return None
        return UniformResource(s.established_type, s.resolved_payload_hex)

    def assembled_ur_text(self) -> Optional[str]:
        ur = self.assembled_ur()
        if ur is None:
            return None
        return self._gateway.render_ur(ur.type, ur.payload_hex)

    # -- Transitions -------------------------------------------------------

    def receive(self, fragment_text: str) -> ReceiveOutcome:
        """Apply one scanned fragment (or single-part UR) to the session."""
        if self._state.status is AssemblerStatus.MISMATCH:
            return Rejected("mismatch_pending_reset")
        if self._state.status is AssemblerStatus.COMPLETE:
            return Rejected("already_complete")

        try:
            fragment_type = self._gateway.parse_fragment_type(fragment_text)
        except CodecError as e:
            logger.warning("Rejected malformed fragment: %s", e)
            return Rejected("invalid_fragment", str(e))

        expected = self._state.established_type
        if expected is not None and fragment_type != expected:
            self._mismatch = (expected, fragment_type)
            self._replace(status=AssemblerStatus.MISMATCH)
            logger.info("UR type mismatch: expected %s, got %s", expected, fragment_type)
            self._emit("mismatch", MismatchDetected(expected, fragment_type))
            return MismatchDetected(expected=expected, got=fragment_type)

        before = self._state.decoded_count
        try:
            accepted = self._decoder.receive(fragment_text)
        except CodecError as e:
            logger.warning("Rejected malformed fragment: %s", e)
            return Rejected("invalid_fragment", str(e))
        if not accepted:
            logger.warning("Decoder refused fragment of type %s", fragment_type)
            return Rejected("inconsistent_fragment")

        self._sync_from_decoder(fragment_type)
        newly_decoded = self._state.decoded_count - before

        if self._decoder.is_failure():
            logger.warning("Reassembled %s payload failed its checksum", fragment_type)
            self._emit("progress", self._state)
            return Rejected("checksum_failure")

        logger.debug(
            "Fragment accepted: %d/%d blocks decoded",
            self._state.decoded_count,
            self._state.expected_block_count,
        )
        self._emit("progress", self._state)
        if self._state.status is AssemblerStatus.COMPLETE:
            logger.info("Assembly complete: ur:%s (%d blocks)", fragment_type, self._state.expected_block_count)
            self._emit("complete", self.assembled_ur())
        return Accepted(newly_decoded=newly_decoded, complete=self.is_complete())

    def reset(self) -> None:
        self._decoder.reset()
        self._state = AssemblyState()
        self._mismatch = None
        self._emit("reset", self._state)

    # -- Internals ---------------------------------------------------------

    def _sync_from_decoder(self, fragment_type: str) -> None:
        resolved = self._state.resolved_payload_hex
        if resolved is None and self._decoder.is_complete():
            resolved = self._decoder.get_assembled_payload_hex()
        self._replace(
            status=AssemblerStatus.COMPLETE if resolved is not None else AssemblerStatus.ASSEMBLING,
            established_type=self._state.established_type or fragment_type,
            seen_blocks=tuple(self._decoder.seen_blocks),
            decoded_blocks=tuple(self._decoder.decoded_blocks),
            expected_block_count=self._decoder.expected_block_count,
            resolved_payload_hex=resolved,
        )

    def _replace(self, **changes) -> None:
        self._state = dataclasses.replace(self._state, **changes)
