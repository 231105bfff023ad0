"""
Event compaction before storage.

Drops bulky fields the server never needs and run-length encodes long
transcripts: "yeahhhhh" -> "yeah*6*". A transcript that already contains
'*' is stored unchanged so decoding stays unambiguous.
"""

from __future__ import annotations

import re

from constants import COMPRESS_MIN_LENGTH

DROPPED_FIELDS = ("alternatives", "raw_match")

_RUN = re.compile(r"(.)\1{2,}", re.DOTALL)
_ENCODED_RUN = re.compile(r"(.)\*(\d+)\*", re.DOTALL)


def compress_string(text: str | None, min_length: int = COMPRESS_MIN_LENGTH) -> tuple[str | None, bool]:
    """Returns (text, encoded)."""
    if not text or len(text) < min_length or "*" in text:
        return text, False
    encoded = _RUN.sub(lambda m: f"{m.group(1)}*{len(m.group(0))}*", text)
    return encoded, encoded != text


def decompress_string(text: str | None) -> str | None:
    if not text:
        return text
    return _ENCODED_RUN.sub(lambda m: m.group(1) * int(m.group(2)), text)


def compress_event(event: dict, enabled: bool = True, min_length: int = COMPRESS_MIN_LENGTH) -> tuple[dict, bool]:
    if not enabled:
        return dict(event), False
    compressed = {k: v for k, v in event.items() if k not in DROPPED_FIELDS}
    transcript, encoded = compress_string(compressed.get("transcript"), min_length)
    if encoded:
        compressed["transcript"] = transcript
    return compressed, encoded


def decompress_event(event: dict, encoded: bool) -> dict:
    if not encoded:
        return dict(event)
    return {**event, "transcript": decompress_string(event.get("transcript"))}
