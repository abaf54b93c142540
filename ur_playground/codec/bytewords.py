"""Bytewords encoding of binary payloads (standard, uri, minimal styles).

WHY: URs carry their CBOR payload as bytewords so the text survives QR
alphanumeric mode, voice and handwriting. The converter offers all three
styles in both directions.

HOW: Each byte maps to one of 256 four-letter words. A CRC32 checksum
(big-endian, 4 bytes) is appended before encoding and verified after
decoding. The minimal style keeps only the first and last letter of each
word; standard separates full words with spaces, uri with hyphens.

RULES:
- Input/output of the public functions is hex, not bytes
- Decoding is case-insensitive
- A wrong checksum or an unknown word raises CodecError
- Minimal style is what UR strings use on the wire
"""

from __future__ import annotations

import binascii
import struct
import zlib
from typing import Dict, List

from ur_playground.core.errors import CodecError

STYLES = ("minimal", "standard", "uri")

_WORDS = (
    "able acid also apex aqua arch atom aunt away axis back bald barn belt beta bias "
    "blue body brag brew bulb buzz calm cash cats chef city claw code cola cook cost "
    "crux curl cusp cyan dark data days deli dice diet door down draw drop drum dull "
    "duty each easy echo edge epic even exam exit eyes fact fair fern figs film fish "
    "fizz flap flew flux foxy free frog fuel fund gala game gear gems gift girl glow "
    "good gray grim guru gush gyro half hang hard hawk heat help high hill holy hope "
    "horn huts iced idea idle inch inky into iris iron item jade jazz join jolt jowl "
    "judo jugs jump junk jury keep keno kept keys kick kiln king kite kiwi knob lamb "
    "lava lazy leaf legs liar limp lion list logo loud love luau luck lung main many "
    "math maze memo menu meow mild mint miss monk nail navy need news next noon note "
    "numb obey oboe omit onyx open oval owls paid part peck play plus poem pool pose "
    "puff puma purr quad quiz race ramp real redo rich road rock roof ruby ruin runs "
    "rust safe saga scar sets silk skew slot soap solo song stub surf swan taco task "
    "taxi tent tied time tiny toil tomb toys trip tuna twin ugly undo unit urge user "
    "vast very veto vial vibe view visa void vows wall wand warm wasp wave waxy webs "
    "what when whiz wolf work yank yawn yell yoga yurt zaps zero zest zinc zone zoom"
).split()

_WORD_INDEX: Dict[str, int] = {word: i for i, word in enumerate(_WORDS)}
_MINIMAL_INDEX: Dict[str, int] = {word[0] + word[-1]: i for i, word in enumerate(_WORDS)}

_SEPARATORS = {"standard": " ", "uri": "-"}


def crc32(data: bytes) -> int:
    """CRC-32 (ISO-HDLC) of ``data`` as an unsigned int."""
    return zlib.crc32(data) & 0xFFFFFFFF


def _check_style(style: str) -> str:
    if style not in STYLES:
        raise CodecError(
            "Unknown bytewords style {!r} (expected one of {})".format(style, ", ".join(STYLES))
        )
    return style


def encode_bytes(data: bytes, style: str = "minimal") -> str:
    """Encode raw bytes, checksum included, in the given style."""
    _check_style(style)
    body = data + struct.pack(">I", crc32(data))
    if style == "minimal":
        return "".join(_WORDS[b][0] + _WORDS[b][-1] for b in body)
    return _SEPARATORS[style].join(_WORDS[b] for b in body)


def decode_bytes(text: str, style: str = "minimal") -> bytes:
    """Decode bytewords text back to raw bytes, verifying the checksum."""
    _check_style(style)
    cleaned = text.strip().lower()
    if not cleaned:
        raise CodecError("Bytewords input is empty")

    if style == "minimal":
        if len(cleaned) % 2:
            raise CodecError("Minimal bytewords must have an even number of letters")
        tokens = [cleaned[i:i + 2] for i in range(0, len(cleaned), 2)]
        index = _MINIMAL_INDEX
    else:
        tokens = cleaned.split(_SEPARATORS[style]) if style == "uri" else cleaned.split()
        index = _WORD_INDEX

    values: List[int] = []
    for token in tokens:
        value = index.get(token)
        if value is None:
            raise CodecError("Invalid byteword: {!r}".format(token))
        values.append(value)

    if len(values) < 5:
        raise CodecError("Bytewords input too short to carry a checksum")

    body = bytes(values)
    data, checksum = body[:-4], body[-4:]
    if struct.unpack(">I", checksum)[0] != crc32(data):
        raise CodecError("Invalid bytewords checksum")
    return data


def encode(hex_payload: str, style: str = "minimal") -> str:
    """Encode a hex payload as bytewords."""
    try:
        data = binascii.unhexlify(hex_payload)
    except (binascii.Error, ValueError) as e:
        raise CodecError("Invalid hex: {}".format(e)) from e
    return encode_bytes(data, style)


def decode(text: str, style: str = "minimal") -> str:
    """Decode bytewords text to a lowercase hex payload."""
    return decode_bytes(text, style).hex()
