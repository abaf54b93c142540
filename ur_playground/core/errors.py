"""Exception hierarchy and typed conversion errors.

WHY: Callers (CLI, scan sessions, tests) must be able to tell a bad hex
string from an incomplete multi-part sequence without parsing messages.
Expected failures are ordinary outcomes, so conversion errors are values
returned inside a ConversionResult, not exceptions.

HOW: Two families live here:
  Exceptions      — UrPlaygroundError and subclasses, raised by the codec
                    layer (CodecError) and by parameter validation
                    (ParameterValidationError).
  ConversionError — frozen dataclasses, one per failure kind, each with a
                    stable ``code`` string and a human ``message``.

RULES:
- CodecError never escapes the core: the orchestrator and assembler turn it
  into a ConversionError or a Rejected outcome
- ParameterValidationError is raised before any fragment is produced
- Every ConversionError is resolvable by the caller (fix input, reset, retry)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


class UrPlaygroundError(Exception):
    """Base error for all ur_playground operations."""


class CodecError(UrPlaygroundError, ValueError):
    """Malformed hex, UR, bytewords, CBOR or checksum."""


class ParameterValidationError(UrPlaygroundError, ValueError):
    """Invalid fragment generation or scheduling parameters."""


# ---------------------------------------------------------------------------
# Conversion errors (returned, not raised)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConversionError:
    """Structured error payload within a ConversionResult."""

    code = "conversion_error"

    @property
    def message(self) -> str:
        return "Conversion failed"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class InvalidHex(ConversionError):
    code = "invalid_hex"

    @property
    def message(self) -> str:
        return "Invalid hex input (expected an even number of 0-9a-f characters)"


@dataclass(frozen=True)
class InvalidUr(ConversionError):
    detail: str = ""

    code = "invalid_ur"

    @property
    def message(self) -> str:
        return "Invalid UR: {}".format(self.detail)


@dataclass(frozen=True)
class InvalidJson(ConversionError):
    detail: str = ""

    code = "invalid_json"

    @property
    def message(self) -> str:
        return "Invalid JSON: {}".format(self.detail)


@dataclass(frozen=True)
class InvalidBytewords(ConversionError):
    detail: str = ""

    code = "invalid_bytewords"

    @property
    def message(self) -> str:
        return "Invalid bytewords: {}".format(self.detail)


@dataclass(frozen=True)
class InvalidCbor(ConversionError):
    detail: str = ""

    code = "invalid_cbor"

    @property
    def message(self) -> str:
        return "CBOR decode failed: {}".format(self.detail)


@dataclass(frozen=True)
class AssemblyIncomplete(ConversionError):
    """Multi-part input did not contain enough fragments to finish assembly."""

    progress: float = 0.0

    code = "assembly_incomplete"

    @property
    def message(self) -> str:
        return "Incomplete multi-part UR. Progress: {:.1f}%".format(self.progress * 100)


@dataclass(frozen=True)
class UnsupportedFormatPair(ConversionError):
    source: str = ""
    target: str = ""

    code = "unsupported_format_pair"

    @property
    def message(self) -> str:
        return "Cannot convert from {} to {}".format(self.source, self.target)


@dataclass(frozen=True)
class MissingUrTypeOverride(ConversionError):
    """No registry type resolved and no usable UR type override was given."""

    code = "missing_ur_type_override"

    @property
    def message(self) -> str:
        return (
            "A UR type is required: use lowercase a-z, 0-9 and single hyphens "
            "between segments"
        )


@dataclass(frozen=True)
class FormatNotDetected(ConversionError):
    detected: str = "unknown"

    code = "format_not_detected"

    @property
    def message(self) -> str:
        if self.detected == "empty":
            return "Input is empty"
        return "Unable to detect input format. Please pick one."
