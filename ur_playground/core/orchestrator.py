"""Format conversion pipeline: detect → parse → pivot → render.

WHY: Every pair of formats (UR, multi-part UR, hex, bytewords, the
Decoded views) is reachable from every other through one pivot: the CBOR
payload as hex. Routing all conversions through that pivot keeps the
number of code paths linear in the number of formats.

HOW: ConversionOrchestrator.convert() runs five steps:
  1. Resolve format tags (``auto`` runs the detector) and reject pairs
     that cannot work, e.g. a display-only Decoded view as a source
  2. Return a cached output when the same request was seen before
  3. Parse the input into a _Parsed record: an optional UniformResource,
     the payload hex, and for JSON input the structured value
  4. Render the target from the pivot hex
  5. Cache the output and record the result in the history
Multi-part input is handed line by line to a fresh FountainAssembler.

RULES:
- Expected failures are ConversionError values in ConversionResult, never
  raised; CodecError from the gateway is translated at this boundary
- Only decoded-json and decoded-diagnostic may be sources; multiur is
  never a target
- Decoded targets try the registry type first and fall back to generic
  CBOR decoding; the fallback is flagged in the output and logged
- UR targets keep a parsed UR's type, else resolve a registry tag, else
  use the sanitized override, else "unknown-tag" (when anonymous
  payloads are allowed); a payload that is not CBOR skips the registry
  step
- Only successful conversions are cached
- last_result() / history() replace any global "last decoded value"
"""

from __future__ import annotations

import collections
import dataclasses
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from ur_playground import config
from ur_playground.codec.gateway import CodecGateway
from ur_playground.core.assembler import FountainAssembler, MismatchDetected, Rejected
from ur_playground.core.cache import ConversionCache, make_key
from ur_playground.core.detector import FormatTag, detect_format, parse_format
from ur_playground.core.errors import (
    AssemblyIncomplete,
    CodecError,
    ConversionError,
    FormatNotDetected,
    InvalidBytewords,
    InvalidCbor,
    InvalidHex,
    InvalidJson,
    InvalidUr,
    MissingUrTypeOverride,
    UnsupportedFormatPair,
)
from ur_playground.core.relay import CrossContextRelay
from ur_playground.core.ur import UniformResource, sanitize_ur_type
from ur_playground.formatters import FORMATTERS
from ur_playground.formatters.diagnostic_parser import parse_diagnostic

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_DECODED_SOURCES = (FormatTag.DECODED_JSON, FormatTag.DECODED_DIAGNOSTIC)

FALLBACK_NO_UR_TYPE = "no-ur-type"
FALLBACK_UNREGISTERED_TYPE = "unregistered-type"
FALLBACK_REGISTRY_DECODE_FAILED = "registry-decode-failed"


@dataclass(frozen=True)
class ConversionOptions:
    """Per-request conversion settings.

    Attributes:
        ur_type: UR type to use when a payload has none; sanitized before use.
        input_bytewords_style: Style of bytewords input (minimal/standard/uri).
        output_bytewords_style: Style of bytewords output.
        allow_anonymous: Name untyped payloads "unknown-tag" instead of failing.
    """

    ur_type: Optional[str] = None
    input_bytewords_style: str = config.DEFAULT_BYTEWORDS_STYLE
    output_bytewords_style: str = config.DEFAULT_BYTEWORDS_STYLE
    allow_anonymous: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class ConversionOutput:
    """A rendered conversion plus the metadata of how it was produced.

    Attributes:
        text: The rendered output.
        source_format: Format the input was parsed as (after detection).
        target_format: Format that was rendered.
        payload_hex: The pivot CBOR payload.
        ur_type: UR type of the input or output, when one is known.
        registry_resolved: The UR type came from a registry tag in the payload.
        auto_detected_type: UR type found without user input, if any.
        detected_source: Detector result when the source was "auto".
        used_fallback: A Decoded target fell back to generic CBOR decoding.
        fallback_reason: Why the registry-typed decode was not used.
        decoded_value: Structured value behind a Decoded target.
        media_type: MIME type of ``text``.
        cached: Served from the ConversionCache.
    """

    text: str
    source_format: str
    target_format: str
    payload_hex: Optional[str] = None
    ur_type: Optional[str] = None
    registry_resolved: bool = False
    auto_detected_type: Optional[str] = None
    detected_source: Optional[str] = None
    used_fallback: bool = False
    fallback_reason: Optional[str] = None
    decoded_value: Any = field(default=None, compare=False)
    media_type: str = "text/plain"
    cached: bool = False

    def metadata(self) -> Dict[str, Any]:
        return {
            "source_format": self.source_format,
            "target_format": self.target_format,
            "payload_hex": self.payload_hex,
            "ur_type": self.ur_type,
            "registry_resolved": self.registry_resolved,
            "auto_detected_type": self.auto_detected_type,
            "detected_source": self.detected_source,
            "used_fallback": self.used_fallback,
            "fallback_reason": self.fallback_reason,
            "cached": self.cached,
        }


@dataclass(frozen=True)
class ConversionResult:
    """Either an output or an error, never both."""

    output: Optional[ConversionOutput] = None
    error: Optional[ConversionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def text(self) -> Optional[str]:
        return self.output.text if self.output is not None else None


@dataclass(frozen=True)
class _Parsed:
    payload_hex: str
    ur: Optional[UniformResource] = None
    value: Any = None


class ConversionOrchestrator:
    """Converts text between UR-related formats through a hex pivot."""

    def __init__(
        self,
        gateway: Optional[CodecGateway] = None,
        cache: Optional[ConversionCache] = None,
        assembler_factory: Optional[Callable[[], FountainAssembler]] = None,
    ) -> None:
        if gateway is None:
            from ur_playground.codec import DefaultCodecGateway

            gateway = DefaultCodecGateway()
        self._gateway = gateway
        self._cache = cache if cache is not None else ConversionCache()
        self._assembler_factory = assembler_factory or (lambda: FountainAssembler(self._gateway))
        self._history: Deque[ConversionResult] = collections.deque(maxlen=config.HISTORY_SIZE)

    @property
    def cache(self) -> ConversionCache:
        return self._cache

    def detect(self, text: str) -> FormatTag:
        return detect_format(text)

    def last_result(self) -> Optional[ConversionResult]:
        return self._history[0] if self._history else None

    def history(self) -> List[ConversionResult]:
        """Recent results, newest first."""
        return list(self._history)

    # -- Public API --------------------------------------------------------

    def convert(
        self,
        raw_input: str,
        source_format: Union[str, FormatTag],
        target_format: Union[str, FormatTag],
        options: Optional[ConversionOptions] = None,
    ) -> ConversionResult:
        """Convert ``raw_input`` from ``source_format`` to ``target_format``.

        ``source_format`` may be ``"auto"`` to run the detector first.
        """
        options = options or ConversionOptions()
        try:
            source = parse_format(source_format)
            target = parse_format(target_format)
        except ValueError:
            return self._record(ConversionResult(error=UnsupportedFormatPair(str(source_format), str(target_format))))

        requested_source = source
        detected: Optional[FormatTag] = None
        if source is FormatTag.AUTO:
            detected = detect_format(raw_input)
            source = detected
        if source in (FormatTag.EMPTY, FormatTag.UNKNOWN):
            return self._record(ConversionResult(error=FormatNotDetected(source.value)))

        unsupported = self._check_pair(source, target)
        if unsupported is not None:
            return self._record(ConversionResult(error=unsupported))

        key = make_key(raw_input, requested_source.value, target.value, options.to_dict())
        hit = self._cache.get(key)
        if hit is not None:
            return self._record(ConversionResult(output=dataclasses.replace(hit, cached=True)))

        parsed = self._parse(raw_input, source, options)
        if isinstance(parsed, ConversionError):
            return self._record(ConversionResult(error=parsed))

        output = self._render(parsed, source, target, options)
        if isinstance(output, ConversionError):
            return self._record(ConversionResult(error=output))

        if detected is not None:
            output = dataclasses.replace(output, detected_source=detected.value)
        self._cache.put(key, output)
        logger.debug("Converted %s → %s (%d chars)", source.value, target.value, len(output.text))
        return self._record(ConversionResult(output=output))

    def convert_forwarded(
        self,
        relay: CrossContextRelay,
        context: str = config.SCANNER_FORWARD_CONTEXT,
        target_format: Union[str, FormatTag] = FormatTag.DECODED_JSON,
        options: Optional[ConversionOptions] = None,
    ) -> Optional[ConversionResult]:
        """Convert a UR a scan session forwarded to ``context``; None if nothing is waiting."""
        data = relay.take_payload("{}_ur".format(context))
        if data is None:
            return None
        if isinstance(data, dict):
            ur_text, origin = data["ur"], data.get("source", "unknown")
        else:
            ur_text, origin = str(data), "unknown"
        logger.info("Converting UR forwarded from %s", origin)
        return self.convert(ur_text, FormatTag.UR, target_format, options)

    # -- Steps -------------------------------------------------------------

    @staticmethod
    def _check_pair(source: FormatTag, target: FormatTag) -> Optional[ConversionError]:
        if source.is_decoded and source not in _DECODED_SOURCES:
            return UnsupportedFormatPair(source.value, target.value)
        if target in (FormatTag.AUTO, FormatTag.EMPTY, FormatTag.UNKNOWN, FormatTag.MULTI_UR):
            return UnsupportedFormatPair(source.value, target.value)
        return None

    def _parse(self, raw_input: str, source: FormatTag, options: ConversionOptions) -> Union[_Parsed, ConversionError]:
        text = raw_input.strip()

        if source is FormatTag.UR:
            try:
                ur = self._gateway.parse_ur(text)
            except CodecError as e:
                return InvalidUr(str(e))
            return _Parsed(payload_hex=ur.payload_hex, ur=ur)

        if source is FormatTag.MULTI_UR:
            return self._assemble(text)

        if source is FormatTag.HEX:
            if not _HEX_RE.match(text) or len(text) % 2:
                return InvalidHex()
            return _Parsed(payload_hex=text.lower())

        if source is FormatTag.BYTEWORDS:
            try:
                return _Parsed(payload_hex=self._gateway.bytewords_decode(text, options.input_bytewords_style))
            except CodecError as e:
                return InvalidBytewords(str(e))

        if source is FormatTag.DECODED_DIAGNOSTIC:
            try:
                return _Parsed(payload_hex=parse_diagnostic(text).hex())
            except CodecError as e:
                return InvalidCbor(str(e))

        # decoded-json
        try:
            value = json.loads(text)
        except ValueError as e:
            return InvalidJson(str(e))
        try:
            payload_hex = self._gateway.encode_value_to_hex(value)
        except CodecError as e:
            return InvalidJson(str(e))
        return _Parsed(payload_hex=payload_hex, value=value)

    def _assemble(self, text: str) -> Union[_Parsed, ConversionError]:
        assembler = self._assembler_factory()
        for line in (ln.strip() for ln in text.splitlines()):
            if not line:
                continue
            outcome = assembler.receive(line)
            if isinstance(outcome, MismatchDetected):
                return InvalidUr("mixed UR types: expected {}, got {}".format(outcome.expected, outcome.got))
            if isinstance(outcome, Rejected) and outcome.reason == "invalid_fragment":
                return InvalidUr(outcome.detail)
            if assembler.is_complete():
                break
        ur = assembler.assembled_ur()
        if ur is None:
            return AssemblyIncomplete(progress=assembler.get_progress())
        return _Parsed(payload_hex=ur.payload_hex, ur=ur)

    def _render(
        self, parsed: _Parsed, source: FormatTag, target: FormatTag, options: ConversionOptions
    ) -> Union[ConversionOutput, ConversionError]:
        base = ConversionOutput(
            text="",
            source_format=source.value,
            target_format=target.value,
            payload_hex=parsed.payload_hex,
            ur_type=parsed.ur.type if parsed.ur is not None else None,
        )

        if target is FormatTag.HEX:
            return dataclasses.replace(base, text=parsed.payload_hex)

        if target is FormatTag.BYTEWORDS:
            try:
                words = self._gateway.bytewords_encode(parsed.payload_hex, options.output_bytewords_style)
            except CodecError as e:
                return InvalidBytewords(str(e))
            return dataclasses.replace(base, text=words)

        if target.is_decoded:
            return self._render_decoded(parsed, target, base)

        return self._render_ur(parsed, options, base)

    def _render_decoded(
        self, parsed: _Parsed, target: FormatTag, base: ConversionOutput
    ) -> Union[ConversionOutput, ConversionError]:
        type_name = parsed.ur.type if parsed.ur is not None else None
        fallback_reason: Optional[str] = None
        value: Any = None

        if type_name is None:
            fallback_reason = FALLBACK_NO_UR_TYPE
        else:
            registry_value = self._gateway.try_decode_registry_type(type_name, parsed.payload_hex)
            if registry_value is not None:
                value = registry_value.data
            elif self._gateway.has_registry_type(type_name):
                fallback_reason = FALLBACK_REGISTRY_DECODE_FAILED
            else:
                fallback_reason = FALLBACK_UNREGISTERED_TYPE

        if fallback_reason is not None:
            try:
                value = self._gateway.decode_cbor_hex(parsed.payload_hex)
            except CodecError as e:
                return InvalidCbor(str(e))
            logger.info("Registry-typed decode not used (%s); decoded as generic CBOR", fallback_reason)

        formatter = FORMATTERS[target.value]()
        try:
            rendered = formatter.format(value, parsed.payload_hex)
        except CodecError as e:
            return InvalidCbor(str(e))
        return dataclasses.replace(
            base,
            text=rendered.content,
            media_type=rendered.media_type,
            used_fallback=fallback_reason is not None,
            fallback_reason=fallback_reason,
            decoded_value=value,
        )

    def _render_ur(
        self, parsed: _Parsed, options: ConversionOptions, base: ConversionOutput
    ) -> Union[ConversionOutput, ConversionError]:
        if parsed.ur is not None and parsed.ur.type is not None:
            text = self._gateway.render_ur(parsed.ur.type, parsed.payload_hex)
            return dataclasses.replace(base, text=text, auto_detected_type=parsed.ur.type)

        try:
            resolved = self._gateway.resolve_registry_ur(parsed.payload_hex)
        except CodecError as e:
            logger.debug("Payload is not CBOR, skipping registry lookup: %s", e)
            resolved = None
        if resolved is not None:
            return dataclasses.replace(
                base,
                text=self._gateway.render_ur(resolved.type, resolved.payload_hex),
                payload_hex=resolved.payload_hex,
                ur_type=resolved.type,
                registry_resolved=True,
                auto_detected_type=resolved.type,
            )

        if options.ur_type is not None:
            ur_type = sanitize_ur_type(options.ur_type)
            if not ur_type:
                return MissingUrTypeOverride()
        elif options.allow_anonymous:
            ur_type = config.FALLBACK_UR_TYPE
        else:
            return MissingUrTypeOverride()
        return dataclasses.replace(
            base, text=self._gateway.render_ur(ur_type, parsed.payload_hex), ur_type=ur_type
        )

    def _record(self, result: ConversionResult) -> ConversionResult:
        self._history.appendleft(result)
        if not result.ok:
            logger.debug("Conversion failed: %s", result.error.message)
        return result
