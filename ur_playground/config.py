"""Configuration constants and .env loading.

WHY: Centralizes every tunable default (cache size, fragment lengths,
redundancy, animation speed, relay lifetime) so both humans and coding
agents can find and override them without digging through logic.

HOW: python-dotenv loads the .env file on import. Constants are
module-level values read from environment variables with hard-coded
fallbacks. Reserved UR type names are plain constants.

RULES:
- CACHE_CAPACITY defaults to 120 entries
- Fragment lengths default to max 90 / min 10 bytes, first seq num 0
- Redundancy ratio -1 selects infinite streaming mode
- Relay TTL is in seconds (default: one hour)
- FALLBACK_UR_TYPE is used for anonymous payloads with no override
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


# ---------------------------------------------------------------------------
# Reserved UR type names
# ---------------------------------------------------------------------------

FALLBACK_UR_TYPE = "unknown-tag"
"""Type given to anonymous payloads when no registry tag or override applies."""

RAW_BYTES_UR_TYPE = "bytes"
"""Type given to raw hex fed into the fragment generator."""

# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

CACHE_CAPACITY = _env_int("UR_PLAYGROUND_CACHE_CAPACITY", 120)

BYTEWORDS_STYLES = ("minimal", "standard", "uri")
DEFAULT_BYTEWORDS_STYLE = os.getenv("UR_PLAYGROUND_BYTEWORDS_STYLE", "minimal")

HISTORY_SIZE = 10
"""Number of past conversion results the orchestrator keeps."""

# ---------------------------------------------------------------------------
# Fragment generation and animation
# ---------------------------------------------------------------------------

DEFAULT_MAX_FRAGMENT_LEN = _env_int("UR_PLAYGROUND_MAX_FRAGMENT_LEN", 90)
DEFAULT_MIN_FRAGMENT_LEN = _env_int("UR_PLAYGROUND_MIN_FRAGMENT_LEN", 10)
DEFAULT_FIRST_SEQ_NUM = _env_int("UR_PLAYGROUND_FIRST_SEQ_NUM", 0)
DEFAULT_REDUNDANCY_RATIO = _env_float("UR_PLAYGROUND_REDUNDANCY_RATIO", 1.5)

INFINITE_RATIO_SENTINEL = -1
"""Redundancy ratio value that selects infinite streaming mode."""

DEFAULT_FPS = _env_float("UR_PLAYGROUND_FPS", 5)

# ---------------------------------------------------------------------------
# Cross-context relay
# ---------------------------------------------------------------------------

DEFAULT_RELAY_TTL_SECONDS = _env_float("UR_PLAYGROUND_RELAY_TTL", 3600)

SCANNER_FORWARD_CONTEXT = "converter"
"""Context a completed scan session forwards its UR to."""
