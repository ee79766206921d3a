"""
Server-Sent Events Helpers

Decodes backend SSE byte streams into data payloads and encodes caller-side
frames. Every encoded frame passes through the text normalizer so the bytes
written to the client are valid UTF-8.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from dialect_gateway.common.text_normalizer import sanitize_bytes

DONE_MARKER = "[DONE]"


class SSEDecoder:
    """
    Simple SSE Decoder: Splits bytes stream into event blocks and extracts data fields.

    - Uses empty line (\\n\\n) as event boundary
    - Supports CRLF (\\r\\n)
    - Only parses data: lines, ignores event:/id:/retry: fields and comments
    """

    def __init__(self) -> None:
        self._buf = b""

    def feed(self, chunk: bytes) -> list[str]:
        """
        Append bytes and return list of parsed data payloads (one string per event).
        """
        if not chunk:
            return []

        data = (self._buf + chunk).replace(b"\r\n", b"\n")
        parts = data.split(b"\n\n")
        # Keep last incomplete event
        self._buf = parts.pop()

        payloads: list[str] = []
        for event in parts:
            payload = self._extract_data_payload(event)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def flush(self) -> list[str]:
        """Return the payload of a trailing event that never got its blank line."""
        if not self._buf.strip():
            self._buf = b""
            return []
        payload = self._extract_data_payload(self._buf.replace(b"\r\n", b"\n"))
        self._buf = b""
        return [payload] if payload is not None else []

    @staticmethod
    def _extract_data_payload(event: bytes) -> Optional[str]:
        data_lines: list[bytes] = []
        for line in event.split(b"\n"):
            if not line:
                continue
            if line.startswith(b"data:"):
                value = line[5:]
                if value.startswith(b" "):
                    value = value[1:]
                data_lines.append(value)
        if not data_lines:
            return None
        return b"\n".join(data_lines).decode("utf-8", errors="ignore")


def encode_sse_data(payload: str) -> bytes:
    """Encode string as SSE data line."""
    return sanitize_bytes(f"data: {payload}\n\n".encode("utf-8", errors="surrogatepass"))


def encode_sse_json(obj: dict[str, Any], event: Optional[str] = None) -> bytes:
    """
    Encode dict as an SSE frame

    With `event` the frame carries an `event:` line before the data line.
    """
    frame = encode_sse_data(json.dumps(obj, ensure_ascii=False))
    if event:
        return f"event: {event}\n".encode("utf-8") + frame
    return frame
