"""
Domain Model Module Initialization
"""

from dialect_gateway.domain.channel import Channel, build_channels

__all__ = [
    "Channel",
    "build_channels",
]
