"""Retrieval engine for orchestrating query embedding and chunk retrieval."""
import logging
from typing import List, Optional
from models.chunk import ScoredChunk
from services.vector_store import VectorStore
from services.embedding_model import EmbeddingModel
from config import TOP_K

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Embed the user prompt and fetch the top-k schema chunks as context."""

    def __init__(self, vector_store: VectorStore, embedding_model: EmbeddingModel, top_k: int = TOP_K):
        """
        Initialize the retrieval engine.

        Args:
            vector_store: VectorStore instance for similarity search
            embedding_model: EmbeddingModel instance for query embedding
            top_k: Default number of chunks to retrieve
        """
        self.vector_store = vector_store
        self.embedding_model = embedding_model
        self.top_k = top_k
        logger.info(f"Initialized RetrievalEngine (top_k={top_k})")

    def retrieve(self, query: str, top_k: Optional[int] = None) -> List[ScoredChunk]:
        """
        Retrieve the chunks most similar to the query.

        No score threshold is applied: whatever the index ranks in the top k
        is returned, closest first.

        Args:
            query: User prompt
            top_k: Overrides the default k

        Returns:
            List of scored chunks, empty for an empty query or an empty index

        Raises:
            ServiceError: If embedding or search operations fail
        """
        # Handle empty query strings gracefully
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return []

        k = self.top_k if top_k is None else top_k

        logger.debug(f"Embedding query: {query[:100]}...")
        query_embedding = self.embedding_model.embed_text(query)

        logger.debug(f"Searching for top {k} chunks")
        scored_chunks = self.vector_store.search(query_embedding, top_k=k)

        if not scored_chunks:
            logger.info("No chunks found for query")
            return []

        logger.info(
            f"Retrieved {len(scored_chunks)} chunks "
            f"(top score: {scored_chunks[0].relevance_score:.3f})"
        )
        return scored_chunks

    def build_context(self, query: str, top_k: Optional[int] = None) -> str:
        """
        Retrieve chunks and join their texts with newlines in ranked order.

        Returns:
            Context blob, "" when nothing was retrieved
        """
        return "\n".join(scored.chunk.text for scored in self.retrieve(query, top_k))
