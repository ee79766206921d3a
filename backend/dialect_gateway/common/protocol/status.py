"""
Status Mapping

Maps the Responses `status` field to the Chat `finish_reason` and the Messages
`stop_reason`. Used by both the streaming and the non-streaming paths.
"""

from typing import Optional

_CHAT_FINISH_REASONS = {
    "completed": "stop",
    "incomplete": "length",
    "failed": "error",
    "cancelled": "stop",
}

_MESSAGES_STOP_REASONS = {
    "completed": "end_turn",
    "incomplete": "max_tokens",
    "failed": "error",
    "cancelled": "stop",
}


def map_chat_finish_reason(status: Optional[str]) -> str:
    """Map backend status to a Chat finish_reason, "stop" when unknown."""
    return _CHAT_FINISH_REASONS.get(status or "", "stop")


def map_messages_stop_reason(status: Optional[str]) -> str:
    """Map backend status to a Messages stop_reason, "stop" when unknown."""
    return _MESSAGES_STOP_REASONS.get(status or "", "stop")
