"""End-to-end scenarios over a fake Bedrock runtime and an in-process Qdrant."""
import json
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import httpx
import pytest
from unittest.mock import Mock
from qdrant_client.http.exceptions import ResponseHandlingException
from conftest import DIMENSIONS, FakeBedrockRuntime, stored_points
from services.chat_handler import ChatRequestHandler
from services.chunking_engine import ChunkingEngine
from services.embedding_model import EmbeddingModel
from services.indexer import SchemaIndexer
from services.llm_client import LLMClient
from services.retrieval_engine import RetrievalEngine
from services.vector_store import VectorStore

SCHEMA = (
    "CREATE TABLE orders (id INT, customer_id INT, total DECIMAL, status TEXT);"
    "CREATE TABLE payments (id INT, order_id INT, amount DECIMAL, created_at TIMESTAMP);"
)


@pytest.fixture
def pipeline(qdrant, fake_bedrock):
    """Index SCHEMA and wire the request handler against the same fakes."""
    vector_store = VectorStore(vector_size=DIMENSIONS, client=qdrant)
    vector_store.ensure_collection()
    embedding_model = EmbeddingModel(dimensions=DIMENSIONS, client=fake_bedrock)

    report = SchemaIndexer(ChunkingEngine(), embedding_model, vector_store).run(SCHEMA)

    retrieval_engine = RetrievalEngine(vector_store, embedding_model)
    handler = ChatRequestHandler(retrieval_engine, LLMClient(client=fake_bedrock))
    return {"report": report, "retrieval": retrieval_engine, "handler": handler, "store": vector_store}


def test_schema_indexed_as_two_chunks(pipeline, qdrant):
    """Scenario: two CREATE TABLE statements become points 0 and 1."""
    assert pipeline["report"].indexed_ids == [0, 1]
    assert sorted(stored_points(qdrant, "sql_schema_1")) == [0, 1]


def test_payments_prompt_retrieves_payments_chunk(pipeline):
    """Scenario: a payments question finds the payments table in the top 5."""
    results = pipeline["retrieval"].retrieve("How many payments were made today?")

    assert len(results) <= 5
    texts = [r.chunk.text for r in results]
    assert "CREATE TABLE payments (id INT, order_id INT, amount DECIMAL, created_at TIMESTAMP)" in texts
    assert results[0].chunk.chunk_id == 1
    scores = [r.relevance_score for r in results]
    assert scores == sorted(scores, reverse=True)


def test_full_request_grounds_the_prompt(pipeline, fake_bedrock):
    """Scenario: the generation request carries the retrieved context."""
    result = pipeline["handler"].handle(json.dumps({"prompt": "How many payments were made today?"}))

    assert result.status_code == 200
    assert result.body["response"] == "SELECT * FROM payments;"

    generation_model, generation_request = fake_bedrock.calls[-1]
    assert generation_model == "anthropic.claude-3-haiku-20240307-v1:0"
    context_text = generation_request["messages"][0]["content"][0]["text"]
    assert context_text.startswith("Relevant Context:\nCREATE TABLE payments")


def test_generated_sql_returned_exactly(qdrant):
    """Scenario: content[0].text is the response, unchanged."""
    bedrock = FakeBedrockRuntime(generation_output={"content": [{"text": "SELECT * FROM orders;"}]})
    vector_store = VectorStore(vector_size=DIMENSIONS, client=qdrant)
    vector_store.ensure_collection()
    embedding_model = EmbeddingModel(dimensions=DIMENSIONS, client=bedrock)
    handler = ChatRequestHandler(RetrievalEngine(vector_store, embedding_model), LLMClient(client=bedrock))

    result = handler.handle({"prompt": "List all orders"})

    assert result.status_code == 200
    assert result.body == {"prompt": "List all orders", "response": "SELECT * FROM orders;"}


def test_empty_body_makes_no_upstream_calls(pipeline, fake_bedrock, qdrant):
    """Scenario: empty body is a 400 before anything remote happens."""
    bedrock_calls = len(fake_bedrock.calls)
    qdrant_calls = len(qdrant.method_calls)

    result = pipeline["handler"].handle("")

    assert result.status_code == 400
    assert len(fake_bedrock.calls) == bedrock_calls
    assert len(qdrant.method_calls) == qdrant_calls


def test_index_network_error_is_a_500(fake_bedrock):
    """Scenario: the index is unreachable."""
    unreachable = Mock()
    unreachable.query_points.side_effect = ResponseHandlingException(httpx.ConnectError("connection refused"))

    vector_store = VectorStore(vector_size=DIMENSIONS, client=unreachable)
    embedding_model = EmbeddingModel(dimensions=DIMENSIONS, client=fake_bedrock)
    handler = ChatRequestHandler(RetrievalEngine(vector_store, embedding_model), LLMClient(client=fake_bedrock))

    result = handler.handle({"prompt": "How many payments were made today?"})

    assert result.status_code == 500
    assert result.body["error"] == "Failed to generate SQL query"
    assert "unreachable" in result.body["details"]


def test_prompt_matching_nothing_still_answers(qdrant, fake_bedrock):
    """Scenario: an empty index yields an empty context and a normal answer."""
    vector_store = VectorStore(vector_size=DIMENSIONS, client=qdrant)
    vector_store.ensure_collection()
    embedding_model = EmbeddingModel(dimensions=DIMENSIONS, client=fake_bedrock)
    retrieval_engine = RetrievalEngine(vector_store, embedding_model)

    assert retrieval_engine.build_context("How many payments were made today?") == ""

    handler = ChatRequestHandler(retrieval_engine, LLMClient(client=fake_bedrock))
    assert handler.handle({"prompt": "How many payments were made today?"}).status_code == 200
