"""Chunking engine that splits a SQL schema into statement-level chunks."""
import logging
from abc import ABC, abstractmethod
from typing import List

from models.chunk import Chunk
from config import STATEMENT_DELIMITER

logger = logging.getLogger(__name__)


class ChunkingStrategy(ABC):
    """Splits raw schema text into the pieces that become chunks."""

    @abstractmethod
    def split(self, raw_schema: str) -> List[str]:
        """Return non-empty, trimmed pieces in source order."""


class StatementDelimiterStrategy(ChunkingStrategy):
    """
    Naive lexical split on the statement terminator.

    Known limitation: the delimiter is not recognized as part of string
    literals or comments, so `';'` inside a DEFAULT value or a `-- note;`
    comment ends the statement early. A tokenizer-based strategy can replace
    this one without touching the indexer or the retriever.
    """

    def __init__(self, delimiter: str = STATEMENT_DELIMITER):
        if not delimiter:
            raise ValueError("Delimiter cannot be empty")
        self.delimiter = delimiter

    def split(self, raw_schema: str) -> List[str]:
        pieces = (piece.strip() for piece in raw_schema.split(self.delimiter))
        return [piece for piece in pieces if piece]


class ChunkingEngine:
    """Segments a schema document into retrievable chunks."""

    def __init__(self, strategy: ChunkingStrategy = None):
        """
        Initialize ChunkingEngine.

        Args:
            strategy: Splitting strategy (defaults to StatementDelimiterStrategy)
        """
        self.strategy = strategy or StatementDelimiterStrategy()

    def chunk(self, raw_schema: str) -> List[Chunk]:
        """
        Chunk a schema document.

        Args:
            raw_schema: Full schema text

        Returns:
            Chunks with sequential zero-based ids in split order
        """
        if not raw_schema or not raw_schema.strip():
            logger.warning("Empty schema provided, no chunks created")
            return []

        chunks = [
            Chunk(chunk_id=idx, text=text)
            for idx, text in enumerate(self.strategy.split(raw_schema))
        ]

        logger.info(f"Created {len(chunks)} chunks using {type(self.strategy).__name__}")
        return chunks
