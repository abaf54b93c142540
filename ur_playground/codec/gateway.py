"""Codec capability interface and its default implementation.

WHY: The core state machines must not care how CBOR, bytewords or fountain
mixing are implemented. They talk to a small capability interface so a
different codec (or a test double) can be dropped in without touching
conversion, assembly or generation logic.

HOW: CodecGateway, FragmentDecoder and FragmentEncoder are typing
Protocols describing exactly what the core consumes. DefaultCodecGateway
implements them with cbor2 for CBOR and the sibling bytewords / multipart /
registry modules for everything UR-specific.

RULES:
- Every gateway method raises CodecError on malformed input, nothing else
- Hex in and out is lowercase
- decode_cbor_hex reads exactly one item; trailing bytes are an error
- tryDecodeRegistryType returns None (not an error) for unknown types or
  payloads that do not have the registered shape
- The gateway is stateless; decoders and encoders it creates are not
"""

from __future__ import annotations

import binascii
import io
import uuid
from typing import Any, List, Optional, Protocol

import cbor2
from cbor2 import CBORTag

from ur_playground.codec import bytewords, multipart
from ur_playground.codec.registry import DEFAULT_REGISTRY, Registry, RegistryValue
from ur_playground.core.errors import CodecError
from ur_playground.core.ur import UniformResource


class FragmentDecoder(Protocol):
    """Decode-side fountain primitive wrapped by FountainAssembler."""

    expected_type: Optional[str]

    def receive(self, fragment_text: str) -> bool: ...

    def is_complete(self) -> bool: ...

    def is_failure(self) -> bool: ...

    def get_assembled_payload_hex(self) -> Optional[str]: ...

    @property
    def seen_blocks(self) -> List[int]: ...

    @property
    def decoded_blocks(self) -> List[int]: ...

    @property
    def expected_block_count(self) -> int: ...

    def reset(self) -> None: ...


class FragmentEncoder(Protocol):
    """Encode-side fountain primitive wrapped by FountainSequencer."""

    @property
    def pure_fragment_count(self) -> int: ...

    def get_all_fragments(self, ratio: float) -> List[str]: ...

    def next_fragment(self) -> str: ...

    def reset(self) -> None: ...


class CodecGateway(Protocol):
    """Everything the core needs from a UR/CBOR/bytewords codec."""

    def parse_ur(self, text: str) -> UniformResource: ...

    def parse_fragment_type(self, text: str) -> str: ...

    def render_ur(self, ur_type: str, payload_hex: str) -> str: ...

    def decode_cbor_hex(self, hex_payload: str) -> Any: ...

    def encode_value_to_hex(self, value: Any) -> str: ...

    def has_registry_type(self, type_name: str) -> bool: ...

    def try_decode_registry_type(self, type_name: str, hex_payload: str) -> Optional[RegistryValue]: ...

    def resolve_registry_ur(self, hex_payload: str) -> Optional[UniformResource]: ...

    def bytewords_encode(self, hex_payload: str, style: str) -> str: ...

    def bytewords_decode(self, text: str, style: str) -> str: ...

    def create_decoder(self) -> FragmentDecoder: ...

    def create_encoder(
        self, ur: UniformResource, max_fragment_len: int, min_fragment_len: int, first_seq_num: int
    ) -> FragmentEncoder: ...


def _normalize_top_level(value: Any) -> Any:
    # cbor2 turns tag 37 into uuid.UUID; registry lookups need the raw tag.
    if isinstance(value, uuid.UUID):
        return CBORTag(37, value.bytes)
    return value


class DefaultCodecGateway:
    """CodecGateway backed by cbor2 and the built-in UR codec modules."""

    def __init__(self, registry: Optional[Registry] = None) -> None:
        self.registry = registry if registry is not None else DEFAULT_REGISTRY

    # -- UR text ---------------------------------------------------------

    def parse_ur(self, text: str) -> UniformResource:
        return multipart.decode_single(text)

    def parse_fragment_type(self, text: str) -> str:
        """Type of a single-part UR or fragment, after full validation."""
        parsed = multipart.split_ur(text)
        if parsed.is_fragment:
            multipart.decode_fragment(text)
        else:
            multipart.decode_single(text)
        return parsed.type

    def render_ur(self, ur_type: str, payload_hex: str) -> str:
        return multipart.encode_single(ur_type, payload_hex.lower())

    # -- CBOR ------------------------------------------------------------

    def decode_cbor_hex(self, hex_payload: str) -> Any:
        try:
            raw = binascii.unhexlify(hex_payload)
        except (binascii.Error, ValueError) as e:
            raise CodecError("Invalid hex: {}".format(e)) from e
        if not raw:
            raise CodecError("CBOR payload is empty")
        fp = io.BytesIO(raw)
        try:
            value = cbor2.CBORDecoder(fp).decode()
        except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
            raise CodecError(str(e)) from e
        if fp.tell() != len(raw):
            raise CodecError("{} trailing bytes after CBOR item".format(len(raw) - fp.tell()))
        return value

    def encode_value_to_hex(self, value: Any) -> str:
        try:
            return cbor2.dumps(value).hex()
        except (cbor2.CBOREncodeError, ValueError, TypeError) as e:
            raise CodecError("Cannot encode value as CBOR: {}".format(e)) from e

    # -- Registry --------------------------------------------------------

    def has_registry_type(self, type_name: str) -> bool:
        return self.registry.get(type_name) is not None

    def try_decode_registry_type(self, type_name: str, hex_payload: str) -> Optional[RegistryValue]:
        try:
            value = self.decode_cbor_hex(hex_payload)
        except CodecError:
            return None
        return self.registry.try_decode(type_name, _normalize_top_level(value))

    def resolve_registry_ur(self, hex_payload: str) -> Optional[UniformResource]:
        value = _normalize_top_level(self.decode_cbor_hex(hex_payload))
        resolved = self.registry.resolve_tagged(value)
        if resolved is None:
            return None
        entry, body = resolved
        return UniformResource(entry.name, self.encode_value_to_hex(body))

    # -- Bytewords -------------------------------------------------------

    def bytewords_encode(self, hex_payload: str, style: str) -> str:
        return bytewords.encode(hex_payload, style)

    def bytewords_decode(self, text: str, style: str) -> str:
        return bytewords.decode(text, style)

    # -- Fountain primitives ---------------------------------------------

    def create_decoder(self) -> multipart.URFountainDecoder:
        return multipart.URFountainDecoder()

    def create_encoder(
        self, ur: UniformResource, max_fragment_len: int, min_fragment_len: int, first_seq_num: int
    ) -> multipart.URFountainEncoder:
        return multipart.URFountainEncoder(
            ur, max_fragment_len, min_fragment_len=min_fragment_len, first_seq_num=first_seq_num
        )
