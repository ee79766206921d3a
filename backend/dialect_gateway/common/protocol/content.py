"""
Message Content Model

Message `content` arrives either as a plain string or as an ordered list of
typed blocks. It is parsed once into a tagged variant and every translator
matches on the variant.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from dialect_gateway.common.errors import ConversionError

# Block type names of the Responses dialect
TO_RESPONSES_BLOCK_TYPES: Mapping[str, str] = {
    "text": "input_text",
    "image": "input_image",
}

FROM_RESPONSES_BLOCK_TYPES: Mapping[str, str] = {
    "input_text": "text",
    "output_text": "text",
    "input_image": "image",
}

TEXT_BLOCK_TYPES = frozenset({"text", "input_text", "output_text"})


@dataclass(frozen=True)
class TextContent:
    text: str = ""


@dataclass(frozen=True)
class BlocksContent:
    blocks: List[Dict[str, Any]] = field(default_factory=list)


MessageContent = Union[TextContent, BlocksContent]


@dataclass(frozen=True)
class UnifiedMessage:
    role: str
    content: MessageContent


def parse_content(raw: Any) -> MessageContent:
    """
    Build the content variant from a raw JSON value.

    Raises:
        ConversionError: Content is neither a string nor a list of objects
    """
    if raw is None:
        return TextContent("")
    if isinstance(raw, str):
        return TextContent(raw)
    if isinstance(raw, list):
        blocks: List[Dict[str, Any]] = []
        for index, block in enumerate(raw):
            if isinstance(block, str):
                # Bare strings inside a block list are text blocks
                blocks.append({"type": "text", "text": block})
            elif isinstance(block, dict):
                blocks.append(block)
            else:
                raise ConversionError(
                    message=f"Unsupported content block at index {index}",
                    details={"block_type": type(block).__name__},
                )
        return BlocksContent(blocks)
    raise ConversionError(
        message="Message content must be a string or a list of content blocks",
        details={"content_type": type(raw).__name__},
    )


def parse_message(raw: Any) -> UnifiedMessage:
    if not isinstance(raw, dict):
        raise ConversionError(
            message="Message must be an object",
            details={"message_type": type(raw).__name__},
        )
    role = raw.get("role")
    if not isinstance(role, str) or not role:
        raise ConversionError(message="Message role is required")
    return UnifiedMessage(role=role, content=parse_content(raw.get("content")))


def remap_block_types(
    content: MessageContent,
    mapping: Mapping[str, str],
) -> MessageContent:
    """
    Rewrite the `type` tag of each block; all other fields are kept.

    Unknown block types pass through unchanged.
    """
    if isinstance(content, TextContent):
        return content
    blocks = []
    for block in content.blocks:
        new_block = copy.deepcopy(block)
        block_type = new_block.get("type")
        if isinstance(block_type, str) and block_type in mapping:
            new_block["type"] = mapping[block_type]
        blocks.append(new_block)
    return BlocksContent(blocks)


def content_to_json(content: MessageContent) -> Union[str, List[Dict[str, Any]]]:
    if isinstance(content, TextContent):
        return content.text
    return [copy.deepcopy(block) for block in content.blocks]


def first_system_message(messages: List[UnifiedMessage]) -> Optional[UnifiedMessage]:
    for message in messages:
        if message.role == "system":
            return message
    return None
