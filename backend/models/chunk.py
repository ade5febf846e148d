"""Chunk data models."""
from dataclasses import dataclass


@dataclass
class Chunk:
    """Represents one statement of the schema indexed for retrieval."""
    chunk_id: int  # Sequential, zero-based, in split order
    text: str


@dataclass
class ScoredChunk:
    """Chunk with similarity score from retrieval."""
    chunk: Chunk
    relevance_score: float  # Cosine similarity, higher is closer
