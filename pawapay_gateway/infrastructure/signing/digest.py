"""Content-Digest computation (sha-512, structured-field byte sequence)"""

import base64
import hashlib
import json
from typing import Any


def serialize_body(body: Any) -> bytes:
    """
    Serialize a JSON body exactly once, compactly, preserving key order.

    The returned bytes are what gets digested, signed and transmitted;
    re-serializing a parsed body may not reproduce them.
    """
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def content_digest(body: Any) -> str:
    """
    Compute the Content-Digest header value for a body.

    Args:
        body: Raw bytes as sent/received, or a JSON-serializable object
            (serialized with serialize_body)

    Returns:
        Header value formatted as sha-512=:<base64>:
    """
    raw = body if isinstance(body, (bytes, bytearray)) else serialize_body(body)
    digest = hashlib.sha512(raw).digest()
    return f"sha-512=:{base64.b64encode(digest).decode('ascii')}:"
