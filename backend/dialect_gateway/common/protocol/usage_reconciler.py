"""
Usage Reconciliation

Derives the final token counts of a translated request from what the backend
reported, falling back to the local tokenizer over the accumulated output text.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from dialect_gateway.common.token_counter import TokenCounter, get_token_counter
from dialect_gateway.common.usage_extractor import normalize_usage

from .base import ConversionContext, UsageCounter

logger = logging.getLogger(__name__)


def capture_usage(ctx: ConversionContext, usage: Optional[dict[str, Any]]) -> None:
    """
    Merge a backend usage object into the context counter

    Zero values never overwrite known counts.
    """
    if not usage:
        return
    details = normalize_usage(usage)
    if details.input_tokens:
        ctx.usage.prompt_tokens = details.input_tokens
    if details.output_tokens:
        ctx.usage.completion_tokens = details.output_tokens
    if details.cached_tokens:
        ctx.usage.cached_tokens = details.cached_tokens


def reconcile(
    ctx: ConversionContext,
    token_counter: Optional[TokenCounter] = None,
) -> UsageCounter:
    """
    Compute the final usage of a request

    - Non-zero completion tokens reported by the backend are trusted.
    - Otherwise completion tokens are counted over the accumulated text.
    - Zero prompt tokens with non-zero completion tokens fall back to the
      prompt tokens estimated from the original request.
    - Total is always prompt + completion.

    Args:
        ctx: Conversion context of the request
        token_counter: Counter used for the fallback, defaults to the shared one

    Returns:
        UsageCounter: The context's counter, finalized
    """
    usage = ctx.usage
    if usage.completion_tokens == 0:
        text = ctx.output_text
        if text:
            counter = token_counter or get_token_counter()
            usage.completion_tokens = counter.count_tokens(text, ctx.model)
            logger.debug(
                "Backend reported no completion tokens, counted %d locally",
                usage.completion_tokens,
            )

    if usage.prompt_tokens == 0 and usage.completion_tokens != 0:
        usage.prompt_tokens = ctx.prompt_tokens

    return usage.finalize()
