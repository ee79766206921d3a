"""
Token Counter Module

Provides the token counting service used to estimate prompt tokens of an
incoming request and to back-fill completion tokens when the backend reports
no usage.
"""

import json
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

import tiktoken

from dialect_gateway.config import get_settings

# Flat estimate for image blocks (OpenAI "low detail" cost)
IMAGE_BLOCK_TOKENS = 85


class TokenCounter(ABC):
    """
    Token Counter Abstract Base Class

    Defines the standard interface for token counting, with concrete implementations provided by subclasses.
    """

    @abstractmethod
    def count_tokens(self, text: str, model: str = "") -> int:
        """
        Count tokens in text

        Args:
            text: Text to count
            model: Model name (different models may use different tokenizers)

        Returns:
            int: Token count
        """
        pass

    def count_messages(self, messages: list[dict[str, Any]], model: str = "") -> int:
        """
        Count tokens in a message or input-item list

        Args:
            messages: Message list, e.g., [{"role": "user", "content": "Hello"}]
            model: Model name

        Returns:
            int: Token count
        """
        if not messages:
            return 0

        # <|start|>role<|separator|>content<|end|>
        tokens_per_message = 4

        total_tokens = 0
        for message in messages:
            if not isinstance(message, dict):
                continue
            total_tokens += tokens_per_message
            role = message.get("role")
            if isinstance(role, str):
                total_tokens += self.count_tokens(role, model)
            total_tokens += self._count_content(message.get("content"), model)
            if message.get("tool_calls") is not None:
                total_tokens += self.count_tokens(
                    json.dumps(message["tool_calls"], ensure_ascii=False), model
                )

        # Every reply is primed with <|start|>assistant<|message|>
        total_tokens += 3
        return total_tokens

    def count_request(self, body: dict[str, Any], model: str = "") -> int:
        """
        Count prompt tokens of a request in any dialect

        Reads `messages` (Chat/Messages), `input` (Responses), plus the system
        prompt (`system` or `instructions`) and tool definitions.
        """
        if not isinstance(body, dict):
            return 0

        total = 0
        messages = body.get("messages")
        if isinstance(messages, list):
            total += self.count_messages(messages, model)

        input_val = body.get("input")
        if isinstance(input_val, str):
            total += self.count_tokens(input_val, model)
        elif isinstance(input_val, list):
            total += self.count_messages(input_val, model)

        for key in ("system", "instructions"):
            total += self._count_content(body.get(key), model)

        tools = body.get("tools")
        if isinstance(tools, list) and tools:
            total += self.count_tokens(json.dumps(tools, ensure_ascii=False), model)
        return total

    def _count_content(self, content: Any, model: str) -> int:
        if isinstance(content, str):
            return self.count_tokens(content, model)
        if not isinstance(content, list):
            return 0
        total = 0
        for block in content:
            if isinstance(block, str):
                total += self.count_tokens(block, model)
            elif isinstance(block, dict):
                block_type = block.get("type")
                if block_type in ("image", "image_url", "input_image"):
                    total += IMAGE_BLOCK_TOKENS
                elif isinstance(block.get("text"), str):
                    total += self.count_tokens(block["text"], model)
                else:
                    total += self.count_tokens(json.dumps(block, ensure_ascii=False), model)
        return total


class TiktokenCounter(TokenCounter):
    """
    tiktoken Token Counter

    Picks the encoding from the model name prefix and caches encoders.
    """

    # Checked in order; longer prefixes first
    MODEL_ENCODING_MAP = {
        "gpt-4o": "o200k_base",
        "gpt-4.1": "o200k_base",
        "gpt-5": "o200k_base",
        "o1": "o200k_base",
        "o3": "o200k_base",
        "o4": "o200k_base",
        "gpt-4": "cl100k_base",
        "gpt-3.5-turbo": "cl100k_base",
        "text-embedding-ada-002": "cl100k_base",
    }

    def __init__(self, default_encoding: str | None = None):
        self.default_encoding = default_encoding or get_settings().DEFAULT_TOKENIZER_ENCODING
        self._encodings: dict[str, Any] = {}

    def _get_encoding(self, model: str) -> Any:
        encoding_name = self.default_encoding
        for model_prefix, enc_name in self.MODEL_ENCODING_MAP.items():
            if model.startswith(model_prefix):
                encoding_name = enc_name
                break

        if encoding_name not in self._encodings:
            self._encodings[encoding_name] = tiktoken.get_encoding(encoding_name)
        return self._encodings[encoding_name]

    def count_tokens(self, text: str, model: str = "") -> int:
        if not text:
            return 0
        encoding = self._get_encoding(model or "")
        # Special-token text in user content is counted as plain text
        return len(encoding.encode(text, disallowed_special=()))


@lru_cache()
def get_token_counter() -> TokenCounter:
    """
    Get the shared token counter

    Returns:
        TokenCounter: Counter instance
    """
    return TiktokenCounter()
