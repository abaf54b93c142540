"""Frame timing for animated fragment display.

WHY: An animated QR code is just "show fragment N now, fragment N+1 in
1/fps seconds". That timing is independent of how the fragment is drawn,
so it lives here with no rendering code at all.

HOW: AnimationScheduler is bound to one FountainSequencer. It can be
driven two ways:
  tick(now)  — called from an external frame callback; returns a new
               fragment whenever a full frame delay has elapsed
  run(...)   — asyncio loop that pushes fragments to a consumer
In Finite mode the scheduler owns the cursor and wraps to the first
fragment after the last. In Infinite mode every frame calls
sequencer.next_fragment() and never loops.

RULES:
- States: Stopped, Playing; play() is idempotent
- restart() goes back to the first fragment and plays
- step_backward() in Infinite mode returns an error StepOutcome
- fps must be positive; frame delay is 1/fps seconds
- Observers get "state" on transitions and "frame" on every new fragment
"""

from __future__ import annotations

import asyncio
import enum
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ur_playground import config
from ur_playground.core.errors import ParameterValidationError
from ur_playground.core.events import EventEmitter
from ur_playground.core.sequencer import FountainSequencer

logger = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    STOPPED = "stopped"
    PLAYING = "playing"


@dataclass(frozen=True)
class StepOutcome:
    """Result of moving to another frame.

    Attributes:
        fragment: The fragment that is now current, or None on error.
        error: Why the step was refused, or None.
    """

    fragment: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AnimationScheduler(EventEmitter):
    """Decides which fragment is current at any moment."""

    def __init__(
        self,
        sequencer: FountainSequencer,
        fps: float = config.DEFAULT_FPS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.sequencer = sequencer
        self._clock = clock
        self._fps = _checked_fps(fps)
        self._state = SchedulerState.STOPPED
        self._position = -1
        self._current: Optional[str] = None
        self._last_frame_at: Optional[float] = None

    # -- Queries -----------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is SchedulerState.PLAYING

    @property
    def fps(self) -> float:
        return self._fps

    @property
    def frame_delay(self) -> float:
        return 1.0 / self._fps

    @property
    def current_fragment(self) -> Optional[str]:
        return self._current

    @property
    def position(self) -> int:
        """Index of the current frame (-1 before the first frame)."""
        return self._position

    # -- Transitions -------------------------------------------------------

    def set_fps(self, fps: float) -> None:
        self._fps = _checked_fps(fps)
        logger.debug("Animation speed set to %s fps", self._fps)

    def play(self) -> None:
        if self._state is SchedulerState.PLAYING:
            return
        self._set_state(SchedulerState.PLAYING)

    def pause(self) -> None:
        self._last_frame_at = None
        if self._state is SchedulerState.STOPPED:
            return
        self._set_state(SchedulerState.STOPPED)

    def restart(self) -> None:
        self._position = -1
        self._current = None
        self._last_frame_at = None
        if self.sequencer.is_infinite:
            self.sequencer.reset()
        self._state = SchedulerState.STOPPED
        self._set_state(SchedulerState.PLAYING)

    def step_forward(self) -> StepOutcome:
        return self._advance()

    def step_backward(self) -> StepOutcome:
        if self.sequencer.is_infinite:
            return StepOutcome(error="Cannot step backward in infinite mode")
        count = self.sequencer.fragment_count
        self._position = count - 1 if self._position <= 0 else self._position - 1
        return self._show(self.sequencer.fragment_at(self._position))

    def tick(self, now: Optional[float] = None) -> Optional[str]:
        """Advance if playing and a frame delay has passed; returns the new fragment."""
        if self._state is not SchedulerState.PLAYING:
            return None
        if now is None:
            now = self._clock()
        if self._last_frame_at is not None and now - self._last_frame_at < self.frame_delay:
            return None
        self._last_frame_at = now
        return self._advance().fragment

    async def run(self, consumer: Callable[[str], None], max_frames: Optional[int] = None) -> int:
        """Play until paused (or ``max_frames`` shown), pushing each frame to ``consumer``.

        Returns the number of frames delivered.
        """
        self.play()
        frames = 0
        while self.is_playing and (max_frames is None or frames < max_frames):
            outcome = self._advance()
            consumer(outcome.fragment)
            frames += 1
            if max_frames is not None and frames >= max_frames:
                break
            await asyncio.sleep(self.frame_delay)
        return frames

    # -- Internals ---------------------------------------------------------

    def _advance(self) -> StepOutcome:
        if self.sequencer.is_infinite:
            self._position += 1
            return self._show(self.sequencer.next_fragment())
        self._position = (self._position + 1) % self.sequencer.fragment_count
        return self._show(self.sequencer.fragment_at(self._position))

    def _show(self, fragment: str) -> StepOutcome:
        self._current = fragment
        self._emit("frame", fragment)
        return StepOutcome(fragment=fragment)

    def _set_state(self, state: SchedulerState) -> None:
        self._state = state
        logger.debug("Animation %s", state.value)
        self._emit("state", state)


def _checked_fps(fps: float) -> float:
    if isinstance(fps, bool) or not isinstance(fps, (int, float)) or not math.isfinite(fps) or fps <= 0:
        raise ParameterValidationError("fps must be a positive number, got {!r}".format(fps))
    return float(fps)
