import hashlib
import json
from typing import Optional


def stable_digest(payload: dict, prefix: Optional[str] = None) -> str:
    """SHA-256 of a JSON-able payload, independent of key order."""
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode()
    digest = hashlib.sha256(encoded).hexdigest()
    return f"{prefix}:{digest}" if prefix else digest
