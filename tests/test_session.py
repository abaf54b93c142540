"""Unit tests for ScanSession and the scanner → converter hand-off.

WHY: The scanner and converter only share the relay. A UR that is
forwarded twice, or never, leaves the converter showing stale data.
"""

from __future__ import annotations

from ur_playground.core.assembler import Accepted, MismatchDetected
from ur_playground.core.detector import FormatTag
from ur_playground.core.orchestrator import ConversionOrchestrator
from ur_playground.core.relay import CrossContextRelay
from ur_playground.core.sequencer import FountainSequencer
from ur_playground.core.session import ScanSession
from ur_playground.core.ur import UniformResource


class TestScanSession:
    """Counting and forwarding."""

    def test_counts_every_scan(self, gateway, pure_fragments):
        session = ScanSession(gateway=gateway)
        session.scan(pure_fragments[0])
        session.scan(pure_fragments[0])
        session.scan("garbage")
        assert session.scan_count == 3
        assert session.accepted_count == 2
        assert session.progress == 0.25

    def test_forwards_once(self, gateway, clock, pure_fragments, four_block_ur):
        relay = CrossContextRelay(clock=clock)
        session = ScanSession(relay=relay, gateway=gateway)
        for fragment in pure_fragments + pure_fragments:
            session.scan(fragment)

        assert session.is_complete
        assert session.forwarded_key == "converter_ur"
        data = relay.take_payload("converter_ur")
        assert data["source"] == "scanner"
        assert gateway.parse_ur(data["ur"]) == four_block_ur
        assert relay.take_payload("converter_ur") is None

    def test_without_relay(self, gateway, pure_fragments):
        session = ScanSession(gateway=gateway)
        outcomes = [session.scan(f) for f in pure_fragments]
        assert outcomes[-1] == Accepted(newly_decoded=1, complete=True)
        assert session.forwarded_key is None

    def test_mismatch_is_reported(self, gateway, pure_fragments, sample_map_hex):
        session = ScanSession(gateway=gateway)
        session.scan(pure_fragments[0])
        outcome = session.scan(gateway.render_ur("user", sample_map_hex))
        assert outcome == MismatchDetected(expected="bytes", got="user")

    def test_reset(self, gateway, clock, pure_fragments):
        relay = CrossContextRelay(clock=clock)
        session = ScanSession(relay=relay, gateway=gateway)
        for fragment in pure_fragments:
            session.scan(fragment)
        session.reset()
        assert session.scan_count == 0
        assert session.forwarded_key is None
        assert session.progress == 0.0


class TestConvertForwarded:
    """ConversionOrchestrator picks up the forwarded UR."""

    def test_round_trip(self, gateway, clock, sample_map_hex):
        ur = UniformResource("user", sample_map_hex)
        relay = CrossContextRelay(clock=clock)
        session = ScanSession(relay=relay, gateway=gateway)
        session.scan(gateway.render_ur(ur.type, ur.payload_hex))

        result = ConversionOrchestrator(gateway).convert_forwarded(relay, target_format=FormatTag.HEX)
        assert result.ok
        assert result.text == sample_map_hex

    def test_multi_part_round_trip(self, gateway, clock, four_block_ur, small_config):
        relay = CrossContextRelay(clock=clock)
        session = ScanSession(relay=relay, gateway=gateway)
        for fragment in FountainSequencer(four_block_ur, small_config, gateway).get_all_fragments():
            session.scan(fragment)

        result = ConversionOrchestrator(gateway).convert_forwarded(relay, target_format=FormatTag.HEX)
        assert result.text == four_block_ur.payload_hex

    def test_nothing_forwarded(self, gateway):
        assert ConversionOrchestrator(gateway).convert_forwarded(CrossContextRelay()) is None

    def test_expired(self, gateway, clock, sample_map_hex):
        relay = CrossContextRelay(clock=clock)
        session = ScanSession(relay=relay, gateway=gateway, ttl=10)
        session.scan(gateway.render_ur("user", sample_map_hex))
        clock.advance(11)
        assert ConversionOrchestrator(gateway).convert_forwarded(relay) is None
