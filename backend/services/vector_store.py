"""Vector store implementation using Qdrant."""
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from qdrant_client import QdrantClient, models as qmodels
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from models.chunk import Chunk, ScoredChunk
from config import QDRANT_URL, QDRANT_API_KEY, QDRANT_TIMEOUT, COLLECTION_NAME, VECTOR_SIZE, DISTANCE
from services.errors import (
    CollectionExistsError,
    DimensionMismatchError,
    ResponseParseError,
    UpstreamServiceError,
)

logger = logging.getLogger(__name__)

SCHEMA_HASH_KEY = "schema_hash"


class VectorStore:
    """Store chunk embeddings and run cosine similarity search in a Qdrant collection."""

    def __init__(
        self,
        url: str = QDRANT_URL,
        api_key: Optional[str] = QDRANT_API_KEY,
        collection_name: str = COLLECTION_NAME,
        vector_size: int = VECTOR_SIZE,
        distance: str = DISTANCE,
        timeout: float = QDRANT_TIMEOUT,
        client: Optional[QdrantClient] = None
    ):
        """
        Initialize the vector store client.

        Args:
            url: Qdrant base URL
            api_key: Optional Qdrant API key
            collection_name: Collection holding the schema chunks
            vector_size: Dimensionality every stored or queried vector must have
            distance: Qdrant distance metric name
            timeout: Request timeout in seconds
            client: Pre-built QdrantClient (built from url/api_key if None)
        """
        if not url and client is None:
            raise ValueError("QDRANT_URL environment variable is required")

        self.collection_name = collection_name
        self.vector_size = vector_size
        self.distance = distance
        self.client = client or QdrantClient(url=url, api_key=api_key or None, timeout=int(timeout))

        logger.info(f"Initialized VectorStore with collection: {collection_name}")

    def collection_exists(self) -> bool:
        """
        Check whether the collection exists.

        Raises:
            UpstreamServiceError: If Qdrant cannot be reached or answers with an error
        """
        return self._call("collection_exists", self.client.collection_exists, self.collection_name)

    def create_collection(
        self,
        vector_size: Optional[int] = None,
        distance: Optional[str] = None
    ) -> None:
        """
        Create the collection. Not idempotent.

        Args:
            vector_size: Overrides the configured dimensionality
            distance: Overrides the configured distance metric

        Raises:
            CollectionExistsError: If the collection already exists
            UpstreamServiceError: If the request fails
        """
        size = vector_size or self.vector_size
        metric = distance or self.distance

        if self.collection_exists():
            raise self._exists_error()

        try:
            self._call(
                "create_collection",
                self.client.create_collection,
                collection_name=self.collection_name,
                vectors_config=qmodels.VectorParams(size=size, distance=qmodels.Distance(metric))
            )
        except UpstreamServiceError as e:
            # Lost a race with another creator
            if e.error.details.get("status") == 409:
                raise self._exists_error() from e
            raise

        self.vector_size = size
        self.distance = metric
        logger.info(f"Created collection {self.collection_name} (size={size}, distance={metric})")

    def ensure_collection(self) -> bool:
        """
        Create the collection if missing, otherwise verify its vector size.

        Returns:
            True if the collection was created by this call

        Raises:
            DimensionMismatchError: If an existing collection has a different size
            UpstreamServiceError: If a request fails
        """
        if not self.collection_exists():
            try:
                self.create_collection()
            except CollectionExistsError:
                logger.info(f"Collection {self.collection_name} appeared concurrently")
                return False
            return True

        info = self._call("get_collection", self.client.get_collection, self.collection_name)
        existing_size = getattr(info.config.params.vectors, "size", None)
        if existing_size is not None and existing_size != self.vector_size:
            raise DimensionMismatchError.create(
                code="DIMENSION_MISMATCH",
                message=(
                    f"Collection '{self.collection_name}' stores {existing_size}-dim vectors, "
                    f"expected {self.vector_size}"
                ),
                details={"collection": self.collection_name, "existing": existing_size}
            )

        logger.debug(f"Collection {self.collection_name} already exists")
        return False

    def upsert(self, point_id: int, vector: List[float], payload: Dict[str, Any]) -> None:
        """
        Insert or replace a single point.

        Args:
            point_id: Point identifier (the chunk id)
            vector: Embedding vector
            payload: Point payload, at least {"text": ...}

        Raises:
            DimensionMismatchError: If the vector size differs from the collection size
            UpstreamServiceError: If the request fails
        """
        self._check_dimensions(vector)

        self._call(
            "upsert",
            self.client.upsert,
            collection_name=self.collection_name,
            points=[qmodels.PointStruct(id=point_id, vector=vector, payload=payload)],
            wait=True
        )
        logger.debug(f"Upserted point {point_id} into {self.collection_name}")

    def search(self, query_embedding: List[float], top_k: int = 5) -> List[ScoredChunk]:
        """
        Find the points most similar to the query vector.

        Args:
            query_embedding: Embedding vector for the query
            top_k: Maximum number of results

        Returns:
            Up to top_k ScoredChunks, highest score first, ties by ascending id

        Raises:
            ValueError: If query_embedding is empty
            DimensionMismatchError: If the vector size differs from the collection size
            UpstreamServiceError: If the request fails
            ResponseParseError: If a returned point has no text payload
        """
        if not query_embedding:
            raise ValueError("Query embedding cannot be empty")

        if top_k <= 0:
            return []

        self._check_dimensions(query_embedding)

        response = self._call(
            "search",
            self.client.query_points,
            collection_name=self.collection_name,
            query=query_embedding,
            limit=top_k,
            with_payload=True
        )

        scored_chunks = []
        for point in response.points:
            text = (point.payload or {}).get("text")
            if not isinstance(text, str):
                raise ResponseParseError.create(
                    code="PARSE_ERROR",
                    message=f"Search result point {point.id} has no text payload",
                    details={"collection": self.collection_name}
                )
            scored_chunks.append(ScoredChunk(
                chunk=Chunk(chunk_id=point.id, text=text),
                relevance_score=float(point.score)
            ))

        scored_chunks.sort(key=lambda sc: (-sc.relevance_score, _id_sort_key(sc.chunk.chunk_id)))
        scored_chunks = scored_chunks[:top_k]

        logger.debug(f"Found {len(scored_chunks)} chunks for query")
        return scored_chunks

    def count(self, schema_hash: Optional[str] = None) -> int:
        """
        Get the exact number of points, optionally only those from one schema version.

        Args:
            schema_hash: Restrict the count to points whose payload carries this hash

        Raises:
            UpstreamServiceError: If the request fails
        """
        count_filter = None
        if schema_hash:
            count_filter = qmodels.Filter(must=[_schema_hash_condition(schema_hash)])

        result = self._call(
            "count",
            self.client.count,
            collection_name=self.collection_name,
            count_filter=count_filter,
            exact=True
        )
        return int(result.count)

    def delete_other_versions(self, schema_hash: str) -> None:
        """
        Remove every point whose payload does not carry the given schema hash.

        Raises:
            UpstreamServiceError: If the request fails
        """
        self._call(
            "delete",
            self.client.delete,
            collection_name=self.collection_name,
            points_selector=qmodels.FilterSelector(
                filter=qmodels.Filter(must_not=[_schema_hash_condition(schema_hash)])
            ),
            wait=True
        )
        logger.info(f"Removed points of other schema versions from {self.collection_name}")

    def close(self) -> None:
        """Close the underlying client."""
        self.client.close()

    def _check_dimensions(self, vector: List[float]) -> None:
        if len(vector) != self.vector_size:
            raise DimensionMismatchError.create(
                code="DIMENSION_MISMATCH",
                message=f"Vector has {len(vector)} dimensions, collection expects {self.vector_size}",
                details={"collection": self.collection_name, "received": len(vector)}
            )

    def _exists_error(self) -> CollectionExistsError:
        return CollectionExistsError.create(
            code="COLLECTION_EXISTS",
            message=f"Collection '{self.collection_name}' already exists",
            details={"collection": self.collection_name}
        )

    def _call(self, operation: str, method, *args: Any, **kwargs: Any) -> Any:
        """Run a client method, mapping SDK failures to service errors."""
        try:
            return method(*args, **kwargs)
        except UnexpectedResponse as e:
            status = e.status_code
            body = e.content.decode("utf-8", errors="replace")[:500] if e.content else ""
            error_msg = f"Vector index request failed with status {status}"
            logger.error(f"{error_msg}: {operation}: {body}")
            raise UpstreamServiceError.create(
                code="API_ERROR",
                message=error_msg,
                details={"operation": operation, "status": status, "body": body},
                retryable=status is not None and (status == 429 or status >= 500)
            ) from e
        except ResponseHandlingException as e:
            source = e.source
            if isinstance(source, ValidationError):
                raise ResponseParseError.create(
                    code="PARSE_ERROR",
                    message=f"Vector index returned an unexpected payload for {operation}",
                    details={"operation": operation, "original_error": str(source)[:500]}
                ) from e
            if isinstance(source, httpx.TimeoutException):
                logger.error(f"Qdrant request timed out: {operation}")
                raise UpstreamServiceError.create(
                    code="TIMEOUT_ERROR",
                    message="Vector index request timed out",
                    details={"operation": operation, "original_error": str(source)},
                    retryable=True
                ) from e
            logger.error(f"Qdrant network error: {operation}: {source}")
            raise UpstreamServiceError.create(
                code="NETWORK_ERROR",
                message=f"Vector index unreachable: {type(source).__name__}",
                details={"operation": operation, "original_error": str(source)},
                retryable=True
            ) from e


def _schema_hash_condition(schema_hash: str) -> qmodels.FieldCondition:
    return qmodels.FieldCondition(key=SCHEMA_HASH_KEY, match=qmodels.MatchValue(value=schema_hash))


def _id_sort_key(point_id: Any):
    # Qdrant ids are unsigned ints or UUID strings; ints sort first
    return (0, point_id, "") if isinstance(point_id, int) else (1, 0, str(point_id))
