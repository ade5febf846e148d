"""Data models for the SQL generation service."""
from .chunk import Chunk, ScoredChunk
from .index import IndexEntry, IndexingReport
from .api import ChatRequest, ChatResponse, ErrorResponse

__all__ = [
    "Chunk",
    "ScoredChunk",
    "IndexEntry",
    "IndexingReport",
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
]
