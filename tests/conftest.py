"""Shared fakes for the vector index and the Bedrock runtime."""
import io
import json
import re
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock
from qdrant_client import QdrantClient

# Every vocabulary word owns one dimension, so similarity is exact word overlap
VOCABULARY = ["orders", "payments", "order_id", "amount", "total", "customer_id", "status", "created_at"]
DIMENSIONS = len(VOCABULARY)


def vocabulary_embedding(text):
    """Count-of-vocabulary-words vector."""
    words = re.findall(r"[a-z_]+", text.lower())
    return [float(words.count(term)) for term in VOCABULARY]


def stored_points(client, collection_name):
    """All points of a collection as {id: payload}."""
    records, _ = client.scroll(collection_name=collection_name, limit=1000, with_payload=True)
    return {record.id: record.payload for record in records}


class FakeBedrockRuntime:
    """Stands in for boto3's bedrock-runtime client."""

    def __init__(self, embed=vocabulary_embedding, generation_output=None):
        self.embed = embed
        self.generation_output = generation_output or {
            "content": [{"type": "text", "text": "SELECT * FROM payments;"}],
            "usage": {"input_tokens": 42, "output_tokens": 7},
        }
        self.calls = []

    def invoke_model(self, modelId, body, contentType=None, accept=None):
        request = json.loads(body)
        self.calls.append((modelId, request))
        if "inputText" in request:
            output = {"embedding": self.embed(request["inputText"]), "inputTextTokenCount": 3}
        else:
            output = self.generation_output
        return {"body": io.BytesIO(json.dumps(output).encode("utf-8")), "contentType": "application/json"}


@pytest.fixture
def qdrant():
    """In-process Qdrant; the Mock wrapper records every client call."""
    client = QdrantClient(":memory:")
    yield Mock(wraps=client)
    client.close()


@pytest.fixture
def fake_bedrock():
    return FakeBedrockRuntime()
