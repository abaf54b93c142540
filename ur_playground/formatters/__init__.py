"""Decoded view registry.

WHY: The orchestrator and CLI need a single lookup to find the right
renderer for a Decoded target. A central dict makes adding a view one
import and one line.

HOW: FORMATTERS maps Decoded format tags to formatter *classes* (not
instances). Callers instantiate as needed:
``formatter = FORMATTERS["decoded-json"]()``.

RULES:
- Keys are the Decoded family FormatTag values
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ur_playground.formatters.commented import CommentedFormatter
from ur_playground.formatters.diagnostic import DiagnosticFormatter
from ur_playground.formatters.json_view import JSONFormatter
from ur_playground.formatters.python_view import PythonFormatter

if TYPE_CHECKING:
    from ur_playground.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "decoded-json": JSONFormatter,
    "decoded-diagnostic": DiagnosticFormatter,
    "decoded-python": PythonFormatter,
    "decoded-commented": CommentedFormatter,
}
