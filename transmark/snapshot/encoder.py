"""gzip + base64 encoding for snapshot payloads (one line per entry)."""

from __future__ import annotations

import base64
import gzip


def encode_snapshot(content: str) -> str:
    # mtime=0 keeps the encoding byte-stable across runs
    compressed = gzip.compress(content.encode("utf-8"), mtime=0)
    return base64.b64encode(compressed).decode("ascii")


def decode_snapshot(encoded: str) -> str:
    return gzip.decompress(base64.b64decode(encoded)).decode("utf-8")
