"""Default UR / CBOR / bytewords codec behind the CodecGateway interface.

WHY: The core consumes a codec through a narrow capability interface.
This package is the implementation that ships with the playground.

HOW: bytewords.py encodes bytes as words, fountain.py holds the fountain
primitives, multipart.py speaks UR text, registry.py knows registered UR
types, and gateway.py ties them together as DefaultCodecGateway.

RULES:
- Only CodecError escapes this package on bad input
- Nothing here keeps global mutable state except the default registry
"""

from ur_playground.codec.gateway import CodecGateway, DefaultCodecGateway

__all__ = ["CodecGateway", "DefaultCodecGateway"]
