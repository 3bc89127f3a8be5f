"""
Identity keys for deduplication and caching.
"""
import hashlib
import json
from typing import Any, Optional

from .types import RequestConfig


def _encode_body(body: Any) -> Optional[str]:
    if body is None:
        return None
    if isinstance(body, bytes):
        return "sha256:" + hashlib.sha256(body).hexdigest()
    return str(body)


def generate_identity_key(url: str, config: Optional[RequestConfig] = None) -> str:
    """
    Build the deterministic identity key of a request.

    Fields are serialized in a fixed order (url, method, headers, params,
    body, json). Header names are lowercased and sorted so that two
    configs differing only in header order or case share a key. Query
    params are sorted by name. The timeout does not take part.
    """
    config = config or RequestConfig()

    headers = sorted((name.lower(), value) for name, value in config.headers.items())
    params = sorted(config.params.items()) if config.params else None

    payload = [
        ["url", url],
        ["method", config.method],
        ["headers", headers],
        ["params", params],
        ["body", _encode_body(config.body)],
        ["json", config.json],
    ]
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str)
