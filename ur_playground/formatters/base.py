"""Abstract base formatter and output container.

WHY: Every Decoded view consumes the same CBOR payload but renders it
differently (JSON for editing, diagnostic notation for protocol work, an
annotated hex listing for byte-level debugging). This base class enforces
one interface so the orchestrator and CLI can work with any view
generically.

HOW: BaseFormatter is an ABC with two requirements: a ``name`` property
and a ``format()`` method. FormatterOutput is a plain dataclass that
bundles the rendered text with its format tag and MIME type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``format()``
- ``format()`` receives both the decoded Python value and the raw payload
  hex; byte-level views read the hex, structural views read the value
- ``format_tag`` matches the FORMATTERS key, e.g. ``"decoded-json"``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class FormatterOutput:
    """One rendered view of a payload.

    Attributes:
        format_tag: The Decoded family member, e.g. ``"decoded-json"``.
        content: The rendered text.
        media_type: MIME type for the content, e.g. ``"application/json"``.
    """

    format_tag: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all Decoded views.

    To add a new view:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable view name, e.g. 'CBOR diagnostic notation'."""

    @abstractmethod
    def format(self, value: Any, payload_hex: str) -> FormatterOutput:
        """Render one payload.

        Args:
            value: The decoded CBOR value (registry body when the payload
                   was decoded as a registry type).
            payload_hex: The raw CBOR payload as lowercase hex.
        """
