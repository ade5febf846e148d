"""Services for the schema-grounded SQL generation pipeline."""
from .errors import (
    ErrorDetail,
    ServiceError,
    UpstreamServiceError,
    ResponseParseError,
    DimensionMismatchError,
    CollectionExistsError,
)
from .schema_loader import SchemaLoader, schema_fingerprint
from .chunking_engine import ChunkingEngine, ChunkingStrategy, StatementDelimiterStrategy
from .embedding_model import EmbeddingModel
from .vector_store import VectorStore
from .indexer import SchemaIndexer
from .retrieval_engine import RetrievalEngine
from .llm_client import LLMClient, LLMResponse, LLMClientError
from .chat_handler import ChatRequestHandler, HandlerResult

__all__ = [
    'ErrorDetail', 'ServiceError', 'UpstreamServiceError', 'ResponseParseError',
    'DimensionMismatchError', 'CollectionExistsError',
    'SchemaLoader', 'schema_fingerprint',
    'ChunkingEngine', 'ChunkingStrategy', 'StatementDelimiterStrategy',
    'EmbeddingModel', 'VectorStore', 'SchemaIndexer', 'RetrievalEngine',
    'LLMClient', 'LLMResponse', 'LLMClientError',
    'ChatRequestHandler', 'HandlerResult',
]
