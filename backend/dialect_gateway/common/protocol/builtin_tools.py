"""
Built-in Tool Accounting

Responses backends run some tools themselves (web search, file search, code
interpreter). Their calls are billed per invocation, so the mappers count them
per tool type in the conversion context.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from .base import ConversionContext

logger = logging.getLogger(__name__)

# Output item type -> built-in tool type
BUILTIN_TOOL_CALL_ITEMS: Dict[str, str] = {
    "web_search_call": "web_search_preview",
    "file_search_call": "file_search",
    "code_interpreter_call": "code_interpreter",
    "image_generation_call": "image_generation",
}

BUILTIN_TOOL_TYPES = frozenset(BUILTIN_TOOL_CALL_ITEMS.values()) | {"web_search"}


def record_output_item(ctx: ConversionContext, item: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Count a finished output item when it is a built-in tool call.

    Returns:
        The tool type that was counted, or None
    """
    if not item:
        return None
    item_type = item.get("type")
    if not isinstance(item_type, str):
        return None
    tool_type = BUILTIN_TOOL_CALL_ITEMS.get(item_type)
    if tool_type is not None:
        ctx.record_builtin_tool(tool_type)
        return tool_type
    if item_type.endswith("_call") and item_type != "function_call":
        logger.warning("Ignoring unrecognized built-in tool call item: %s", item_type)
    return None


def record_declared_tools(ctx: ConversionContext, tools: Optional[Iterable[Any]]) -> None:
    """Count each built-in tool listed on a completed (non-streaming) response."""
    if not tools:
        return
    for tool in tools:
        tool_type = tool.get("type") if isinstance(tool, dict) else None
        if tool_type in BUILTIN_TOOL_TYPES:
            ctx.record_builtin_tool(tool_type)
        elif tool_type not in ("function", "custom"):
            logger.warning("Built-in tool not found for tool type: %s", tool_type)
