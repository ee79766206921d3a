"""
Utility Functions

Identifier and timestamp sources used when building caller responses.
"""

import time
import uuid


def new_id(prefix: str) -> str:
    """
    Generate a unique identifier with a dialect prefix

    Example:
        >>> new_id("msg")
        'msg_0f5e6b1c2d3a4b5c8d9e0f1a2b3c4d5e'
    """
    return f"{prefix}_{uuid.uuid4().hex}"


def now_timestamp() -> int:
    """Current Unix timestamp in seconds."""
    return int(time.time())
