"""Registry of known UR types as tagged-variant lookups.

WHY: A UR's type name says how to read its CBOR ("crypto-seed" is a map,
"crypto-psbt" a byte string). Knowing the registered CBOR tag also lets
the converter name an untyped payload that starts with a registry tag
instead of falling back to "unknown-tag".

HOW: Each RegistryType is plain data: the UR type name, the CBOR tag
numbers it is registered under (current and legacy), and the CBOR shape
its untagged body must have. Lookups are dict-based. Decoding a payload
against a type checks the shape; it never validates fields against a
schema.

RULES:
- UR payloads are untagged: try_decode accepts either the bare body or
  the body wrapped in one of the type's own tags
- A shape mismatch means "not this type" (None), never an exception
- register_type() replaces an existing entry of the same name
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from cbor2 import CBORTag

# Shapes an untagged registry body may take.
SHAPE_MAP = "map"
SHAPE_ARRAY = "array"
SHAPE_BYTES = "bytes"
SHAPE_TEXT = "text"
SHAPE_ANY = "any"

_SHAPE_TYPES = {
    SHAPE_MAP: (Mapping,),
    SHAPE_ARRAY: (list, tuple),
    SHAPE_BYTES: (bytes, bytearray),
    SHAPE_TEXT: (str,),
}


@dataclass(frozen=True)
class RegistryType:
    """One registered UR type."""

    name: str
    tags: Tuple[int, ...]
    shape: str
    description: str = ""
    byte_length: Optional[int] = None

    def matches(self, body: Any) -> bool:
        if isinstance(body, CBORTag) and self.shape != SHAPE_ANY:
            return False
        if self.shape != SHAPE_ANY and not isinstance(body, _SHAPE_TYPES[self.shape]):
            return False
        if self.byte_length is not None and len(body) != self.byte_length:
            return False
        return True


@dataclass(frozen=True)
class RegistryValue:
    """A payload decoded as a known registry type."""

    type_name: str
    tag: Optional[int]
    data: Any = field(default=None)


_BUILTIN_TYPES = (
    RegistryType("bytes", (), SHAPE_BYTES, "Undifferentiated byte string"),
    RegistryType("uuid", (37,), SHAPE_BYTES, "RFC 4122 UUID", byte_length=16),
    RegistryType("hex-string", (6110,), SHAPE_BYTES, "Hex string carrier"),
    RegistryType("seed", (40300,), SHAPE_MAP, "Cryptographic seed"),
    RegistryType("crypto-seed", (300,), SHAPE_MAP, "Cryptographic seed (legacy tag)"),
    RegistryType("hdkey", (40303,), SHAPE_MAP, "Hierarchical deterministic key"),
    RegistryType("crypto-hdkey", (303,), SHAPE_MAP, "Hierarchical deterministic key (legacy tag)"),
    RegistryType("keypath", (40304,), SHAPE_MAP, "Derivation path"),
    RegistryType("crypto-keypath", (304,), SHAPE_MAP, "Derivation path (legacy tag)"),
    RegistryType("coin-info", (40305,), SHAPE_MAP, "Coin type and network"),
    RegistryType("crypto-coin-info", (305,), SHAPE_MAP, "Coin type and network (legacy tag)"),
    RegistryType("eckey", (40306,), SHAPE_MAP, "Elliptic curve key"),
    RegistryType("crypto-eckey", (306,), SHAPE_MAP, "Elliptic curve key (legacy tag)"),
    RegistryType("address", (40307,), SHAPE_MAP, "Cryptocurrency address"),
    RegistryType("crypto-address", (307,), SHAPE_MAP, "Cryptocurrency address (legacy tag)"),
    RegistryType("output-descriptor", (40308,), SHAPE_MAP, "Output descriptor"),
    RegistryType("crypto-output", (308,), SHAPE_ANY, "Output descriptor (legacy tag)"),
    RegistryType("psbt", (40310,), SHAPE_BYTES, "Partially signed Bitcoin transaction"),
    RegistryType("crypto-psbt", (310,), SHAPE_BYTES, "Partially signed Bitcoin transaction (legacy tag)"),
    RegistryType("account-descriptor", (40311,), SHAPE_MAP, "Account descriptor"),
    RegistryType("crypto-account", (311,), SHAPE_MAP, "Account descriptor (legacy tag)"),
    RegistryType("crypto-multi-accounts", (1103,), SHAPE_MAP, "Multiple account keys"),
    RegistryType("detailed-account", (1402,), SHAPE_MAP, "Account with token ids"),
    RegistryType("portfolio-coin", (1403,), SHAPE_MAP, "Portfolio coin"),
    RegistryType("portfolio-metadata", (1404,), SHAPE_MAP, "Portfolio metadata"),
    RegistryType("portfolio", (1405,), SHAPE_MAP, "Portfolio"),
    RegistryType("sign-request", (41411,), SHAPE_MAP, "Signing request"),
    RegistryType("sign-response", (41412,), SHAPE_MAP, "Signing response"),
)


class Registry:
    """Name- and tag-indexed collection of RegistryType entries."""

    def __init__(self, types=_BUILTIN_TYPES) -> None:
        self._by_name: Dict[str, RegistryType] = {}
        self._by_tag: Dict[int, RegistryType] = {}
        for entry in types:
            self.register_type(entry)

    def register_type(self, entry: RegistryType) -> None:
        previous = self._by_name.get(entry.name)
        if previous is not None:
            for tag in previous.tags:
                self._by_tag.pop(tag, None)
        self._by_name[entry.name] = entry
        for tag in entry.tags:
            self._by_tag[tag] = entry

    def get(self, name: str) -> Optional[RegistryType]:
        return self._by_name.get(name)

    def by_tag(self, tag: int) -> Optional[RegistryType]:
        return self._by_tag.get(tag)

    def names(self):
        return sorted(self._by_name)

    def try_decode(self, type_name: str, value: Any) -> Optional[RegistryValue]:
        """Interpret an already-decoded CBOR value as ``type_name``."""
        entry = self._by_name.get(type_name)
        if entry is None:
            return None
        tag = None
        body = value
        if isinstance(value, CBORTag):
            if value.tag not in entry.tags:
                return None
            tag, body = value.tag, value.value
        if not entry.matches(body):
            return None
        return RegistryValue(type_name=entry.name, tag=tag if tag is not None else _first(entry.tags), data=body)

    def resolve_tagged(self, value: Any) -> Optional[Tuple[RegistryType, Any]]:
        """(entry, untagged body) for a value whose top-level tag is registered."""
        if not isinstance(value, CBORTag):
            return None
        entry = self._by_tag.get(value.tag)
        if entry is None or not entry.matches(value.value):
            return None
        return entry, value.value


def _first(tags: Tuple[int, ...]) -> Optional[int]:
    return tags[0] if tags else None


DEFAULT_REGISTRY = Registry()
