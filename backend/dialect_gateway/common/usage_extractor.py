"""
Usage Extraction Helpers

Extract and normalize token usage fields from backend JSON payloads. Handles
the Responses shape (`input_tokens`/`output_tokens`), the Chat shape
(`prompt_tokens`/`completion_tokens`) and the Messages shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class UsageDetails:
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    cached_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    raw_usage: Optional[dict[str, Any]] = None


def _safe_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def normalize_usage(usage: dict[str, Any]) -> UsageDetails:
    """Normalize a usage object of any dialect."""
    input_tokens = _safe_int(usage.get("input_tokens"))
    if input_tokens is None:
        input_tokens = _safe_int(usage.get("prompt_tokens"))
    output_tokens = _safe_int(usage.get("output_tokens"))
    if output_tokens is None:
        output_tokens = _safe_int(usage.get("completion_tokens"))
    total_tokens = _safe_int(usage.get("total_tokens"))
    cached_tokens = _safe_int(usage.get("cached_tokens"))
    reasoning_tokens = None

    input_details = usage.get("input_tokens_details") or usage.get("prompt_tokens_details")
    output_details = usage.get("output_tokens_details") or usage.get("completion_tokens_details")
    if isinstance(input_details, dict):
        cached_tokens = cached_tokens or _safe_int(input_details.get("cached_tokens"))
    if isinstance(output_details, dict):
        reasoning_tokens = _safe_int(output_details.get("reasoning_tokens"))

    return UsageDetails(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total_tokens,
        cached_tokens=cached_tokens,
        reasoning_tokens=reasoning_tokens,
        raw_usage=usage,
    )
