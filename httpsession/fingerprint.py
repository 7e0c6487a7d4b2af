"""
Fingerprint generator for session dirty-checking.

Generates deterministic SHA-256 fingerprints from session data.

Includes:
- The application payload (``session.data``)

Excludes:
- Cookie attributes (expiry changes on every touch)
- Lifecycle flags and the session id
"""

import hashlib
import json
from typing import Any, Mapping


def canonical_json(data: Mapping[str, Any]) -> str:
    """
    Serialize data to canonical JSON.

    Keys are sorted so insertion order never changes the result. Values
    that are not JSON-native are rendered with ``str()``.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def fingerprint(data: Mapping[str, Any]) -> str:
    """
    Generate fingerprint from session data.

    Args:
        data: Session payload

    Returns:
        SHA-256 hex digest string
    """
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()
