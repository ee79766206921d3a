"""
Translator Registry

Manages registration and lookup of request translators, response assemblers
and stream mapper factories by (source, target) dialect pair.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Tuple

from dialect_gateway.common.errors import ConversionError
from dialect_gateway.common.token_counter import TokenCounter

from .base import (
    ConversionContext,
    Dialect,
    IRequestTranslator,
    IResponseAssembler,
    IStreamMapper,
)

logger = logging.getLogger(__name__)

# Stream mappers hold per-request state, so the registry keeps factories
StreamMapperFactory = Callable[[ConversionContext, Optional[TokenCounter]], IStreamMapper]


class TranslatorRegistry:
    """
    Registry for dialect translators.

    Request translators are keyed by (caller dialect, backend dialect).
    Assemblers and stream mappers are keyed by (backend dialect, caller
    dialect), the direction the response travels.
    """

    _instance: Optional["TranslatorRegistry"] = None

    def __init__(self):
        self._translators: Dict[Tuple[Dialect, Dialect], IRequestTranslator] = {}
        self._assemblers: Dict[Tuple[Dialect, Dialect], IResponseAssembler] = {}
        self._stream_mappers: Dict[Tuple[Dialect, Dialect], StreamMapperFactory] = {}

    @classmethod
    def get_instance(cls) -> "TranslatorRegistry":
        """Get singleton instance of the registry."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (useful for testing)."""
        cls._instance = None

    def register_translator(self, translator: IRequestTranslator) -> None:
        key = (translator.source_dialect, translator.target_dialect)
        self._translators[key] = translator
        logger.debug("Registered request translator: %s -> %s", key[0].value, key[1].value)

    def register_assembler(self, assembler: IResponseAssembler) -> None:
        key = (assembler.source_dialect, assembler.target_dialect)
        self._assemblers[key] = assembler
        logger.debug("Registered response assembler: %s -> %s", key[0].value, key[1].value)

    def register_stream_mapper(
        self,
        source: Dialect,
        target: Dialect,
        factory: StreamMapperFactory,
    ) -> None:
        self._stream_mappers[(source, target)] = factory
        logger.debug("Registered stream mapper: %s -> %s", source.value, target.value)

    def get_translator(self, source: Dialect, target: Dialect) -> IRequestTranslator:
        """
        Get the request translator for a dialect pair.

        Raises:
            ConversionError: No translator registered for the pair
        """
        translator = self._translators.get((source, target))
        if translator is None:
            raise ConversionError(
                message=f"No request translator for {source.value} -> {target.value}",
                code="unsupported_conversion",
                source_dialect=source.value,
                target_dialect=target.value,
            )
        return translator

    def get_assembler(self, source: Dialect, target: Dialect) -> IResponseAssembler:
        assembler = self._assemblers.get((source, target))
        if assembler is None:
            raise ConversionError(
                message=f"No response assembler for {source.value} -> {target.value}",
                code="unsupported_conversion",
                source_dialect=source.value,
                target_dialect=target.value,
            )
        return assembler

    def create_stream_mapper(
        self,
        source: Dialect,
        target: Dialect,
        ctx: ConversionContext,
        token_counter: Optional[TokenCounter] = None,
    ) -> IStreamMapper:
        factory = self._stream_mappers.get((source, target))
        if factory is None:
            raise ConversionError(
                message=f"No stream mapper for {source.value} -> {target.value}",
                code="unsupported_conversion",
                source_dialect=source.value,
                target_dialect=target.value,
            )
        return factory(ctx, token_counter)

    def list_supported_conversions(self) -> Dict[str, list]:
        """
        List all supported conversion paths.

        Returns:
            Dictionary with 'request', 'response', 'stream' keys
            containing lists of (source, target) tuples
        """
        return {
            "request": [(s.value, t.value) for s, t in self._translators.keys()],
            "response": [(s.value, t.value) for s, t in self._assemblers.keys()],
            "stream": [(s.value, t.value) for s, t in self._stream_mappers.keys()],
        }
