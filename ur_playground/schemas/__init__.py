"""JSON Schemas shipped with the package.

WHY: Generation parameters arrive as plain mappings (CLI flags, .env,
saved manifests) and fragment manifests leave the process as JSON. Both
are checked against a schema so bad shapes fail loudly at the boundary.

HOW: Each schema is a ``*.schema.json`` file next to this module, loaded
on first use and cached by name.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

_SCHEMA_DIR = Path(__file__).resolve().parent

_CACHED_SCHEMAS: Dict[str, dict] = {}


def load_schema(name: str) -> dict:
    """Load and cache ``<name>.schema.json``."""
    if name not in _CACHED_SCHEMAS:
        with open(_SCHEMA_DIR / "{}.schema.json".format(name)) as f:
            _CACHED_SCHEMAS[name] = json.load(f)
    return _CACHED_SCHEMAS[name]
