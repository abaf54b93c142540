"""Unit tests for the conversion pipeline.

WHY: ConversionOrchestrator is the one entry point every UI uses. Each
format pair, every fallback and every error kind has to come back as a
ConversionResult with the right metadata.

HOW: Payloads are built through the real gateway (cbor2 + UR codec).
Tests are grouped by target family, then errors, then cache/history.

RULES:
- A fresh orchestrator per test (its cache and history are per instance)
"""

from __future__ import annotations

import json

import pytest
from cbor2 import CBORTag

from ur_playground.core.errors import (
    AssemblyIncomplete,
    FormatNotDetected,
    InvalidBytewords,
    InvalidCbor,
    InvalidHex,
    InvalidJson,
    InvalidUr,
    MissingUrTypeOverride,
    UnsupportedFormatPair,
)
from ur_playground.core.orchestrator import (
    FALLBACK_NO_UR_TYPE,
    FALLBACK_REGISTRY_DECODE_FAILED,
    FALLBACK_UNREGISTERED_TYPE,
    ConversionOptions,
    ConversionOrchestrator,
)
from ur_playground.core.sequencer import FountainSequencer
from ur_playground.core.ur import UniformResource

SEED_BODY = {1: bytes(16)}


@pytest.fixture
def orchestrator(gateway):
    return ConversionOrchestrator(gateway)


@pytest.fixture
def user_ur(gateway, sample_map_hex):
    return gateway.render_ur("user", sample_map_hex)


def _fragments(gateway, ur, config):
    return FountainSequencer(ur, config, gateway).get_all_fragments()


# ---------------------------------------------------------------------------
# UR targets
# ---------------------------------------------------------------------------


class TestUrTarget:
    """Type resolution order for UR output."""

    def test_untyped_hex_uses_fallback_type(self, orchestrator, sample_map_hex):
        result = orchestrator.convert(sample_map_hex, "hex", "ur")
        assert result.ok
        assert result.text.startswith("ur:unknown-tag/")
        assert result.output.ur_type == "unknown-tag"
        assert not result.output.registry_resolved

    def test_round_trip_through_hex(self, orchestrator, sample_map_hex):
        ur_text = orchestrator.convert(sample_map_hex, "hex", "ur").text
        assert orchestrator.convert(ur_text, "ur", "hex").text == sample_map_hex

    def test_override_is_sanitized(self, orchestrator, sample_map_hex):
        result = orchestrator.convert(sample_map_hex, "hex", "ur", ConversionOptions(ur_type="My Type!"))
        assert result.text.startswith("ur:my-type/")

    def test_unusable_override(self, orchestrator, sample_map_hex):
        result = orchestrator.convert(sample_map_hex, "hex", "ur", ConversionOptions(ur_type="!!!"))
        assert result.error == MissingUrTypeOverride()

    def test_strict_mode_requires_type(self, orchestrator, sample_map_hex):
        result = orchestrator.convert(sample_map_hex, "hex", "ur", ConversionOptions(allow_anonymous=False))
        assert isinstance(result.error, MissingUrTypeOverride)

    def test_registry_tag_resolves_type(self, orchestrator, gateway):
        tagged = gateway.encode_value_to_hex(CBORTag(40300, SEED_BODY))
        result = orchestrator.convert(tagged, "hex", "ur", ConversionOptions(ur_type="ignored"))
        assert result.text.startswith("ur:seed/")
        assert result.output.registry_resolved
        assert result.output.auto_detected_type == "seed"
        assert result.output.payload_hex == gateway.encode_value_to_hex(SEED_BODY)

    def test_non_cbor_payload_uses_fallback_type(self, orchestrator):
        result = orchestrator.convert("ff00", "hex", "ur")
        assert result.ok
        assert result.text.startswith("ur:unknown-tag/")
        assert not result.output.registry_resolved

    def test_non_cbor_payload_uses_override(self, orchestrator):
        result = orchestrator.convert("ff00", "hex", "ur", ConversionOptions(ur_type="raw"))
        assert result.text.startswith("ur:raw/")
        assert result.output.payload_hex == "ff00"

    def test_parsed_type_is_kept(self, orchestrator, user_ur):
        result = orchestrator.convert(user_ur, "auto", "ur", ConversionOptions(ur_type="other"))
        assert result.text == user_ur
        assert result.output.ur_type == "user"
        assert result.output.detected_source == "ur"

    def test_uppercase_ur_normalized(self, orchestrator, user_ur, sample_map_hex):
        assert orchestrator.convert(user_ur.upper(), "ur", "hex").text == sample_map_hex


# ---------------------------------------------------------------------------
# Decoded targets
# ---------------------------------------------------------------------------


class TestDecodedTarget:
    """Registry-typed decoding and the generic fallback."""

    def test_no_ur_type(self, orchestrator, sample_map_hex):
        result = orchestrator.convert(sample_map_hex, "hex", "decoded-json")
        assert result.output.used_fallback
        assert result.output.fallback_reason == FALLBACK_NO_UR_TYPE
        assert json.loads(result.text) == {"id": 123, "name": "John Doe"}
        assert result.output.media_type == "application/json"

    def test_unregistered_type(self, orchestrator, user_ur):
        result = orchestrator.convert(user_ur, "ur", "decoded-json")
        assert result.output.fallback_reason == FALLBACK_UNREGISTERED_TYPE
        assert result.output.decoded_value == {"id": 123, "name": "John Doe"}

    def test_registry_decode(self, orchestrator, gateway):
        text = gateway.render_ur("seed", gateway.encode_value_to_hex(SEED_BODY))
        result = orchestrator.convert(text, "ur", "decoded-json")
        assert not result.output.used_fallback
        assert result.output.fallback_reason is None
        assert json.loads(result.text) == {"1": "00" * 16}

    def test_registry_decode_failed(self, orchestrator, gateway):
        text = gateway.render_ur("seed", gateway.encode_value_to_hex(b"\x01"))
        result = orchestrator.convert(text, "ur", "decoded-json")
        assert result.output.fallback_reason == FALLBACK_REGISTRY_DECODE_FAILED
        assert result.text == '"01"'

    def test_diagnostic(self, orchestrator, user_ur):
        result = orchestrator.convert(user_ur, "ur", "decoded-diagnostic")
        assert result.text == '{"id": 123, "name": "John Doe"}'
        assert result.output.media_type == "application/cbor-diagnostic"

    def test_python_view(self, orchestrator, user_ur):
        result = orchestrator.convert(user_ur, "ur", "decoded-python")
        assert result.text == '{\n  "id": 123,\n  "name": "John Doe"\n}'

    def test_commented_view(self, orchestrator, user_ur):
        result = orchestrator.convert(user_ur, "ur", "decoded-commented")
        assert result.text.splitlines()[0].startswith("a2")
        assert "# map(2)" in result.text.splitlines()[0]

    def test_invalid_cbor(self, orchestrator):
        result = orchestrator.convert("a1", "hex", "decoded-json")
        assert isinstance(result.error, InvalidCbor)

    def test_trailing_bytes(self, orchestrator):
        result = orchestrator.convert("0000", "hex", "decoded-json")
        assert isinstance(result.error, InvalidCbor)
        assert "trailing" in result.error.message

    def test_tagged_map_json(self, orchestrator, gateway):
        tagged = gateway.encode_value_to_hex(CBORTag(40300, SEED_BODY))
        result = orchestrator.convert(tagged, "hex", "decoded-json")
        assert json.loads(result.text) == {"tag": 40300, "value": {"1": "00" * 16}}

    def test_tagged_map_python_view(self, orchestrator, gateway):
        tagged = gateway.encode_value_to_hex(CBORTag(40300, SEED_BODY))
        result = orchestrator.convert(tagged, "hex", "decoded-python")
        assert result.text == "Tag(40300, {\n  1: Bytes(0x" + "00" * 16 + ")\n})"


# ---------------------------------------------------------------------------
# Hex, bytewords and JSON
# ---------------------------------------------------------------------------


class TestOtherFormats:
    """Pivot conversions that never involve a UR type."""

    def test_json_to_hex(self, orchestrator):
        assert orchestrator.convert('{"a": 1}', "decoded-json", "hex").text == "a1616101"

    def test_invalid_json(self, orchestrator):
        result = orchestrator.convert("{not json", "decoded-json", "hex")
        assert isinstance(result.error, InvalidJson)

    def test_hex_to_bytewords(self, orchestrator):
        assert orchestrator.convert("00010280ff", "hex", "bytewords").text == "aeadaolazmjendeoti"

    def test_hex_to_standard_bytewords(self, orchestrator):
        result = orchestrator.convert("00010280ff", "hex", "bytewords", ConversionOptions(output_bytewords_style="standard"))
        assert result.text == "able acid also lava zoom jade need echo taxi"

    def test_bytewords_to_hex(self, orchestrator):
        result = orchestrator.convert("able acid also lava zoom jade need echo taxi", "auto", "hex",
                                      ConversionOptions(input_bytewords_style="standard"))
        assert result.text == "00010280ff"
        assert result.output.detected_source == "bytewords"

    def test_bad_bytewords_checksum(self, orchestrator):
        result = orchestrator.convert("aeadaolazmjendeozz", "bytewords", "hex")
        assert isinstance(result.error, InvalidBytewords)

    def test_diagnostic_round_trip(self, orchestrator, user_ur, sample_map_hex):
        diag = orchestrator.convert(user_ur, "ur", "decoded-diagnostic").text
        assert orchestrator.convert(diag, "diagnostic", "hex").text == sample_map_hex

    def test_diagnostic_detected_and_tag_resolved(self, orchestrator, gateway):
        result = orchestrator.convert("40300({1: h'" + "00" * 16 + "'})", "auto", "ur")
        assert result.output.detected_source == "decoded-diagnostic"
        assert result.text.startswith("ur:seed/")
        assert result.output.payload_hex == gateway.encode_value_to_hex(SEED_BODY)

    def test_invalid_diagnostic(self, orchestrator):
        result = orchestrator.convert("[1, 2", "decoded-diagnostic", "hex")
        assert isinstance(result.error, InvalidCbor)


# ---------------------------------------------------------------------------
# Multi-part input
# ---------------------------------------------------------------------------


class TestMultiUr:
    """Fragments joined by newlines."""

    @pytest.mark.parametrize("reverse", [False, True])
    def test_two_parts_any_order(self, orchestrator, gateway, two_part_ur, small_config, reverse):
        fragments = _fragments(gateway, two_part_ur, small_config)
        if reverse:
            fragments = fragments[::-1]
        result = orchestrator.convert("\n".join(fragments), "multiur", "hex")
        assert result.text == two_part_ur.payload_hex
        assert result.output.ur_type == "bytes"

    def test_auto_detects_multi_ur(self, orchestrator, gateway, four_block_ur, pure_fragments):
        result = orchestrator.convert("\n\n".join(pure_fragments), "auto", "ur")
        assert result.output.detected_source == "multiur"
        assert gateway.parse_ur(result.text) == four_block_ur

    def test_incomplete(self, orchestrator, pure_fragments):
        result = orchestrator.convert("\n".join(pure_fragments[:2]), "multiur", "hex")
        assert result.error == AssemblyIncomplete(progress=0.5)
        assert result.error.message == "Incomplete multi-part UR. Progress: 50.0%"

    def test_mixed_types(self, orchestrator, gateway, four_block_ur, small_config, pure_fragments):
        other = _fragments(gateway, UniformResource("custom-type", four_block_ur.payload_hex), small_config)
        result = orchestrator.convert("\n".join([pure_fragments[0], other[1]]), "multiur", "hex")
        assert isinstance(result.error, InvalidUr)

    def test_invalid_fragment(self, orchestrator, pure_fragments):
        result = orchestrator.convert(pure_fragments[0] + "\nur:bytes/2-4/zzzz", "multiur", "hex")
        assert isinstance(result.error, InvalidUr)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    """Every failure is a value, never an exception."""

    def test_invalid_hex(self, orchestrator):
        assert orchestrator.convert("abc", "hex", "ur").error == InvalidHex()

    def test_invalid_ur(self, orchestrator):
        assert isinstance(orchestrator.convert("ur:bytes/zzzz", "ur", "hex").error, InvalidUr)

    @pytest.mark.parametrize(
        "source,target",
        [
            ("decoded-commented", "hex"),
            ("decoded-python", "ur"),
            ("hex", "multiur"),
            ("hex", "auto"),
            ("xml", "hex"),
            ("hex", "xml"),
        ],
    )
    def test_unsupported_pair(self, orchestrator, source, target):
        result = orchestrator.convert("00", source, target)
        assert isinstance(result.error, UnsupportedFormatPair)
        assert result.error.code == "unsupported_format_pair"

    def test_empty_input(self, orchestrator):
        result = orchestrator.convert("   ", "auto", "hex")
        assert result.error == FormatNotDetected("empty")
        assert result.error.message == "Input is empty"

    def test_undetectable_input(self, orchestrator):
        result = orchestrator.convert("hello world", "auto", "hex")
        assert result.error == FormatNotDetected("unknown")


# ---------------------------------------------------------------------------
# Cache and history
# ---------------------------------------------------------------------------


class TestCacheAndHistory:
    """Successful conversions are cached; every result is recorded."""

    def test_cache_hit(self, orchestrator, sample_map_hex):
        first = orchestrator.convert(sample_map_hex, "hex", "ur")
        second = orchestrator.convert(sample_map_hex, "hex", "ur")
        assert not first.output.cached
        assert second.output.cached
        assert second.text == first.text
        assert len(orchestrator.cache) == 1

    def test_options_are_part_of_key(self, orchestrator, sample_map_hex):
        orchestrator.convert(sample_map_hex, "hex", "ur")
        result = orchestrator.convert(sample_map_hex, "hex", "ur", ConversionOptions(ur_type="other"))
        assert not result.output.cached
        assert result.text.startswith("ur:other/")

    def test_failures_not_cached(self, orchestrator):
        orchestrator.convert("abc", "hex", "ur")
        orchestrator.convert("abc", "hex", "ur")
        assert len(orchestrator.cache) == 0

    def test_history_newest_first(self, orchestrator, sample_map_hex):
        orchestrator.convert(sample_map_hex, "hex", "ur")
        orchestrator.convert("abc", "hex", "ur")
        assert not orchestrator.last_result().ok
        assert [r.ok for r in orchestrator.history()] == [False, True]

    def test_history_bounded(self, orchestrator):
        for i in range(12):
            orchestrator.convert("{:02x}".format(i), "hex", "hex")
        history = orchestrator.history()
        assert len(history) == 10
        assert history[0].text == "0b"

    def test_empty_history(self, orchestrator):
        assert orchestrator.last_result() is None

    def test_metadata(self, orchestrator, sample_map_hex):
        meta = orchestrator.convert(sample_map_hex, "auto", "ur").output.metadata()
        assert meta["detected_source"] == "hex"
        assert meta["ur_type"] == "unknown-tag"
        assert meta["cached"] is False
