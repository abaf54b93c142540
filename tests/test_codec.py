"""Unit tests for the default codec: bytewords, fountain, UR text, registry.

WHY: Every core component trusts the codec to reject malformed input and
to reassemble exactly what was split. A checksum slip here would show up
as silent data corruption everywhere else.

HOW: Tests are organized by module:
  - TestBytewords: published test vector in all three styles, checksum errors
  - TestFountain: fragment selection, nominal length, peeling decoder
  - TestMultipart: UR text parsing and single/multi-part rendering
  - TestRegistry: tagged-variant lookups and shape checks
  - TestGateway: CBOR decode, registry resolution, tag 37 normalization

RULES:
- Bytewords vector is the 5-byte sample 00 01 02 80 ff
- Fountain tests never depend on the exact mixed-fragment choice
"""

from __future__ import annotations

import types

import cbor2
import pytest
from cbor2 import CBORTag

from ur_playground.codec import bytewords, multipart
from ur_playground.codec.fountain import (
    FountainDecoder,
    FountainEncoder,
    FountainPart,
    choose_fragments,
    find_nominal_fragment_length,
)
from ur_playground.codec.registry import DEFAULT_REGISTRY, SHAPE_TEXT, Registry, RegistryType
from ur_playground.core.errors import CodecError
from ur_playground.core.ur import UniformResource

SAMPLE_MAP_HEX = "a2626964187b646e616d65684a6f686e20446f65"
SAMPLE_UUID_BYTES = bytes(range(16))
VECTOR = bytes([0x00, 0x01, 0x02, 0x80, 0xFF])


# ---------------------------------------------------------------------------
# TestBytewords
# ---------------------------------------------------------------------------


class TestBytewords:
    """Bytewords encode/decode with CRC32."""

    def test_standard_vector(self):
        assert bytewords.encode_bytes(VECTOR, "standard") == "able acid also lava zoom jade need echo taxi"

    def test_uri_vector(self):
        assert bytewords.encode_bytes(VECTOR, "uri") == "able-acid-also-lava-zoom-jade-need-echo-taxi"

    def test_minimal_vector(self):
        assert bytewords.encode_bytes(VECTOR, "minimal") == "aeadaolazmjendeoti"

    def test_decode_each_style(self):
        assert bytewords.decode_bytes("able acid also lava zoom jade need echo taxi", "standard") == VECTOR
        assert bytewords.decode_bytes("able-acid-also-lava-zoom-jade-need-echo-taxi", "uri") == VECTOR
        assert bytewords.decode_bytes("AEADAOLAZMJENDEOTI", "minimal") == VECTOR

    def test_hex_helpers(self):
        assert bytewords.encode("00010280ff") == "aeadaolazmjendeoti"
        assert bytewords.decode("aeadaolazmjendeoti") == "00010280ff"

    def test_bad_checksum(self):
        with pytest.raises(CodecError, match="checksum"):
            bytewords.decode_bytes("aeadaolazmjendeoae", "minimal")

    def test_unknown_word(self):
        with pytest.raises(CodecError):
            bytewords.decode_bytes("aeadaolazmjendeozz", "minimal")

    def test_odd_minimal_length(self):
        with pytest.raises(CodecError):
            bytewords.decode_bytes("aeadaolazmjendeot", "minimal")

    def test_unknown_style(self):
        with pytest.raises(CodecError, match="style"):
            bytewords.encode_bytes(VECTOR, "fancy")


# ---------------------------------------------------------------------------
# TestFountain
# ---------------------------------------------------------------------------


class TestFountain:
    """Fountain encoder / decoder primitives."""

    def test_pure_parts_choose_one_fragment(self):
        assert choose_fragments(3, 5, 123) == frozenset({2})

    def test_mixed_parts_are_deterministic(self):
        first = choose_fragments(17, 5, 0xDEADBEEF)
        assert first == choose_fragments(17, 5, 0xDEADBEEF)
        assert first
        assert first <= set(range(5))

    def test_nominal_fragment_length(self):
        assert find_nominal_fragment_length(102, 10, 30) == 26
        assert find_nominal_fragment_length(5, 10, 30) == 5

    def test_empty_message_rejected(self):
        with pytest.raises(CodecError):
            find_nominal_fragment_length(0, 10, 30)

    def test_reversed_pure_parts_reassemble(self):
        message = bytes(range(102))
        encoder = FountainEncoder(message, 30, min_fragment_len=10)
        assert encoder.seq_len == 4

        decoder = FountainDecoder()
        for seq in range(encoder.seq_len, 0, -1):
            assert decoder.receive_part(encoder.part_for(seq))
        assert decoder.is_success()
        assert decoder.result == message

    def test_mixed_parts_recover_missing_fragment(self):
        message = bytes(range(102))
        encoder = FountainEncoder(message, 30, min_fragment_len=10)
        decoder = FountainDecoder()
        for seq in (1, 2, 3):
            decoder.receive_part(encoder.part_for(seq))
        assert not decoder.is_complete()

        seq = encoder.seq_len
        while not decoder.is_complete() and seq < 200:
            seq += 1
            decoder.receive_part(encoder.part_for(seq))
        assert decoder.result == message

    def test_inconsistent_part_refused(self):
        decoder = FountainDecoder()
        decoder.receive_part(FountainEncoder(bytes(range(102)), 30).part_for(1))
        assert not decoder.receive_part(FountainEncoder(bytes(range(40)), 30).part_for(1))

    def test_part_wire_format(self):
        part = FountainEncoder(bytes(range(40)), 30).part_for(2)
        assert cbor2.loads(part.to_cbor())[:4] == [2, 2, 40, part.checksum]
        assert FountainPart.from_cbor(part.to_cbor()) == part

    def test_malformed_part_cbor(self):
        with pytest.raises(CodecError):
            FountainPart.from_cbor(cbor2.dumps([1, 2, 3]))


# ---------------------------------------------------------------------------
# TestMultipart
# ---------------------------------------------------------------------------


class TestMultipart:
    """UR text syntax and UR-level encoder / decoder."""

    def test_split_fragment_path(self):
        parsed = multipart.split_ur("UR:BYTES/1-2/AEAD")
        assert parsed.type == "bytes"
        assert parsed.seq == (1, 2)
        assert parsed.is_fragment

    def test_invalid_type(self):
        with pytest.raises(CodecError):
            multipart.split_ur("ur:bad_type/aeadaolazmjendeoti")

    def test_missing_prefix(self):
        with pytest.raises(CodecError):
            multipart.split_ur("bytes/aeadaolazmjendeoti")

    def test_single_part_text(self):
        text = multipart.encode_single("custom", SAMPLE_MAP_HEX)
        assert text.startswith("ur:custom/")
        assert multipart.decode_single(text) == UniformResource("custom", SAMPLE_MAP_HEX)

    def test_fragment_path_must_match_header(self):
        encoder = multipart.URFountainEncoder(
            UniformResource("bytes", "5826" + bytes(range(38)).hex()), 30, min_fragment_len=10
        )
        fragment = encoder.fragment_for(1)
        assert fragment.startswith("ur:bytes/1-2/")
        tampered = fragment.replace("/1-2/", "/2-2/")
        with pytest.raises(CodecError):
            multipart.decode_fragment(tampered)

    def test_small_payload_is_single_part(self):
        encoder = multipart.URFountainEncoder(UniformResource("custom", SAMPLE_MAP_HEX), 90)
        assert encoder.is_single_part
        assert encoder.next_fragment() == multipart.encode_single("custom", SAMPLE_MAP_HEX)

    def test_anonymous_ur_cannot_be_fragmented(self):
        with pytest.raises(CodecError):
            multipart.URFountainEncoder(UniformResource(None, SAMPLE_MAP_HEX), 90)

    def test_decoder_refuses_other_type(self):
        ur = UniformResource("bytes", "5826" + bytes(range(38)).hex())
        other = UniformResource("other", ur.payload_hex)
        decoder = multipart.URFountainDecoder()
        assert decoder.receive(multipart.URFountainEncoder(ur, 30).fragment_for(1))
        assert not decoder.receive(multipart.URFountainEncoder(other, 30).fragment_for(2))
        assert decoder.decoded_blocks == [1, 0]


# ---------------------------------------------------------------------------
# TestRegistry
# ---------------------------------------------------------------------------


class TestRegistry:
    """Tagged-variant registry lookups."""

    def test_tagged_uuid(self):
        value = DEFAULT_REGISTRY.try_decode("uuid", CBORTag(37, SAMPLE_UUID_BYTES))
        assert value.type_name == "uuid"
        assert value.tag == 37
        assert value.data == SAMPLE_UUID_BYTES

    def test_untagged_body_accepted(self):
        value = DEFAULT_REGISTRY.try_decode("uuid", SAMPLE_UUID_BYTES)
        assert value is not None
        assert value.tag == 37

    def test_wrong_length_is_not_a_match(self):
        assert DEFAULT_REGISTRY.try_decode("uuid", b"short") is None

    def test_wrong_tag_is_not_a_match(self):
        assert DEFAULT_REGISTRY.try_decode("uuid", CBORTag(38, SAMPLE_UUID_BYTES)) is None

    def test_unknown_type(self):
        assert DEFAULT_REGISTRY.try_decode("no-such-type", {}) is None

    def test_resolve_tagged(self):
        entry, body = DEFAULT_REGISTRY.resolve_tagged(CBORTag(40300, {1: b"\x01" * 16}))
        assert entry.name == "seed"
        assert body == {1: b"\x01" * 16}

    def test_read_only_mapping_has_map_shape(self):
        body = types.MappingProxyType({1: b"\x01" * 16})
        entry, resolved = DEFAULT_REGISTRY.resolve_tagged(CBORTag(40300, body))
        assert entry.name == "seed"
        assert resolved is body
        assert DEFAULT_REGISTRY.try_decode("seed", body).data is body

    def test_resolve_untagged_is_none(self):
        assert DEFAULT_REGISTRY.resolve_tagged({1: 2}) is None

    def test_register_type_replaces(self):
        registry = Registry(types=())
        registry.register_type(RegistryType("note", (9000,), SHAPE_TEXT))
        registry.register_type(RegistryType("note", (9001,), SHAPE_TEXT))
        assert registry.by_tag(9000) is None
        assert registry.by_tag(9001).name == "note"
        assert registry.names() == ["note"]


# ---------------------------------------------------------------------------
# TestGateway
# ---------------------------------------------------------------------------


class TestGateway:
    """DefaultCodecGateway behaviour the core depends on."""

    def test_decode_cbor_hex(self, gateway):
        assert gateway.decode_cbor_hex(SAMPLE_MAP_HEX) == {"id": 123, "name": "John Doe"}

    def test_decode_invalid_hex(self, gateway):
        with pytest.raises(CodecError):
            gateway.decode_cbor_hex("zz")

    def test_decode_empty(self, gateway):
        with pytest.raises(CodecError):
            gateway.decode_cbor_hex("")

    def test_decode_trailing_bytes(self, gateway):
        with pytest.raises(CodecError, match="1 trailing bytes"):
            gateway.decode_cbor_hex("0000")

    def test_resolve_tagged_map(self, gateway):
        tagged = cbor2.dumps(CBORTag(40300, {1: bytes(16)})).hex()
        ur = gateway.resolve_registry_ur(tagged)
        assert ur.type == "seed"
        assert ur.payload_hex == "a10150" + "00" * 16

    def test_resolve_non_cbor_raises(self, gateway):
        with pytest.raises(CodecError):
            gateway.resolve_registry_ur("ff00")

    def test_encode_value(self, gateway):
        assert gateway.encode_value_to_hex({"a": 1}) == "a1616101"

    def test_resolve_uuid_tag(self, gateway):
        tagged = cbor2.dumps(CBORTag(37, SAMPLE_UUID_BYTES)).hex()
        ur = gateway.resolve_registry_ur(tagged)
        assert ur.type == "uuid"
        assert ur.payload_hex == "50" + SAMPLE_UUID_BYTES.hex()

    def test_resolve_plain_map_is_none(self, gateway):
        assert gateway.resolve_registry_ur(SAMPLE_MAP_HEX) is None

    def test_try_decode_registry_type_shape_mismatch(self, gateway):
        assert gateway.try_decode_registry_type("crypto-psbt", SAMPLE_MAP_HEX) is None
        assert gateway.has_registry_type("crypto-psbt")
        assert not gateway.has_registry_type("custom")

    def test_parse_fragment_type(self, gateway, pure_fragments):
        assert gateway.parse_fragment_type(pure_fragments[0]) == "bytes"
