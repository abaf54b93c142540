"""Scan session: an assembler plus hand-off of the finished UR.

WHY: A camera scanner feeds every decoded QR code into an assembler and,
once the UR is complete, passes it to the converter so the user can
inspect it there. Keeping the counting and the hand-off here keeps the
assembler itself free of relay concerns.

HOW: ScanSession.scan() forwards each scanned text to a FountainAssembler
and tallies total scans and accepted fragments. When assembly completes
the UR text is stored in the CrossContextRelay under
``"<forward_context>_ur"`` as ``{"ur", "source": "scanner", "timestamp"}``.
ConversionOrchestrator.convert_forwarded() picks it up from there.

RULES:
- Every scan counts, accepted or not
- The finished UR is forwarded exactly once per assembly
- A type mismatch is logged as a warning; reset() starts over
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from ur_playground import config
from ur_playground.codec.gateway import CodecGateway
from ur_playground.core.assembler import Accepted, FountainAssembler, MismatchDetected, ReceiveOutcome
from ur_playground.core.relay import CrossContextRelay

logger = logging.getLogger(__name__)


class ScanSession:
    """Drives one scan from first fragment to forwarded UR."""

    def __init__(
        self,
        relay: Optional[CrossContextRelay] = None,
        gateway: Optional[CodecGateway] = None,
        forward_context: str = config.SCANNER_FORWARD_CONTEXT,
        ttl: Optional[float] = None,
    ) -> None:
        self.assembler = FountainAssembler(gateway)
        self.relay = relay
        self.forward_context = forward_context
        self.ttl = ttl
        self.scan_count = 0
        self.accepted_count = 0
        self.forwarded_key: Optional[str] = None

    @property
    def progress(self) -> float:
        return self.assembler.get_progress()

    @property
    def is_complete(self) -> bool:
        return self.assembler.is_complete()

    def scan(self, text: str) -> ReceiveOutcome:
        self.scan_count += 1
        outcome = self.assembler.receive(text)
        if isinstance(outcome, Accepted):
            self.accepted_count += 1
            if outcome.complete:
                self._forward()
        elif isinstance(outcome, MismatchDetected):
            logger.warning(
                "Scanned ur:%s while assembling ur:%s; reset the session to switch",
                outcome.got,
                outcome.expected,
            )
        return outcome

    def reset(self) -> None:
        self.assembler.reset()
        self.scan_count = 0
        self.accepted_count = 0
        self.forwarded_key = None

    def _forward(self) -> None:
        if self.relay is None or self.forwarded_key is not None:
            return
        data = {
            "ur": self.assembler.assembled_ur_text(),
            "source": "scanner",
            "timestamp": time.time(),
        }
        self.forwarded_key = self.relay.forward(self.forward_context, "ur", data, self.ttl)
        logger.info(
            "Forwarded assembled UR to %s after %d scans (%d accepted)",
            self.forwarded_key,
            self.scan_count,
            self.accepted_count,
        )
