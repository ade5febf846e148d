"""Unit tests for EmbeddingModel class."""
import io
import json
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError
from services.embedding_model import EmbeddingModel
from services.errors import DimensionMismatchError, ResponseParseError, UpstreamServiceError


def bedrock_body(payload):
    """Build an invoke_model response."""
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return {"body": io.BytesIO(raw)}


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, "InvokeModel")


class TestEmbeddingModel:
    """Test suite for EmbeddingModel."""

    @pytest.fixture
    def mock_client(self):
        """Create a mock bedrock-runtime client."""
        return Mock()

    @pytest.fixture
    def model(self, mock_client):
        """Create an EmbeddingModel with 3 dimensions."""
        return EmbeddingModel(dimensions=3, client=mock_client, max_retries=3)

    def test_initialization_defaults(self, mock_client):
        """Test defaults come from configuration."""
        model = EmbeddingModel(client=mock_client)
        assert model.model_id == "amazon.titan-embed-text-v1"
        assert model.dimensions == 1536
        assert model.client is mock_client

    @patch('services.embedding_model.boto3')
    def test_initialization_builds_bedrock_client(self, mock_boto3):
        """Test that a bedrock-runtime client is built for the region."""
        EmbeddingModel(region="eu-west-1")
        mock_boto3.client.assert_called_once_with("bedrock-runtime", region_name="eu-west-1")

    def test_initialization_rejects_zero_retries(self, mock_client):
        """Test max_retries validation."""
        with pytest.raises(ValueError, match="max_retries"):
            EmbeddingModel(client=mock_client, max_retries=0)

    def test_embed_text_empty_string(self, model, mock_client):
        """Test embed_text raises error for empty string without calling Bedrock."""
        with pytest.raises(ValueError, match="Text cannot be empty"):
            model.embed_text("")

        with pytest.raises(ValueError, match="Text cannot be empty"):
            model.embed_text("   ")

        mock_client.invoke_model.assert_not_called()

    def test_embed_text_success(self, model, mock_client):
        """Test successful single text embedding."""
        mock_client.invoke_model.return_value = bedrock_body({"embedding": [0.1, 0.2, 0.3]})

        result = model.embed_text("CREATE TABLE orders (id INT)")

        assert result == [0.1, 0.2, 0.3]
        kwargs = mock_client.invoke_model.call_args.kwargs
        assert kwargs["modelId"] == "amazon.titan-embed-text-v1"
        assert json.loads(kwargs["body"]) == {"inputText": "CREATE TABLE orders (id INT)"}

    def test_embed_text_dimension_mismatch(self, model, mock_client):
        """Test that a vector of the wrong size is rejected."""
        mock_client.invoke_model.return_value = bedrock_body({"embedding": [0.1, 0.2]})

        with pytest.raises(DimensionMismatchError, match="expected 3"):
            model.embed_text("text")

    def test_embed_text_missing_embedding_field(self, model, mock_client):
        """Test that a response without `embedding` is a parse error."""
        mock_client.invoke_model.return_value = bedrock_body({"vector": [0.1, 0.2, 0.3]})

        with pytest.raises(ResponseParseError, match="no 'embedding' field"):
            model.embed_text("text")

    def test_embed_text_invalid_json(self, model, mock_client):
        """Test that an undecodable body is a parse error."""
        mock_client.invoke_model.return_value = bedrock_body(b"<html>oops</html>")

        with pytest.raises(ResponseParseError, match="not valid JSON"):
            model.embed_text("text")

    @patch('services.embedding_model.time.sleep')
    def test_retry_on_throttling(self, mock_sleep, model, mock_client):
        """Test that throttling is retried with backoff."""
        mock_client.invoke_model.side_effect = [
            client_error("ThrottlingException"),
            bedrock_body({"embedding": [1.0, 2.0, 3.0]}),
        ]

        result = model.embed_text("text")

        assert result == [1.0, 2.0, 3.0]
        assert mock_client.invoke_model.call_count == 2
        mock_sleep.assert_called_once()
        assert 0 <= mock_sleep.call_args[0][0] <= model.initial_delay

    @patch('services.embedding_model.time.sleep')
    def test_retry_on_connection_error(self, mock_sleep, model, mock_client):
        """Test that network errors are retried."""
        mock_client.invoke_model.side_effect = [
            EndpointConnectionError(endpoint_url="https://bedrock-runtime.us-east-1.amazonaws.com"),
            bedrock_body({"embedding": [1.0, 2.0, 3.0]}),
        ]

        assert model.embed_text("text") == [1.0, 2.0, 3.0]
        assert mock_client.invoke_model.call_count == 2

    @patch('services.embedding_model.time.sleep')
    def test_retries_exhausted(self, mock_sleep, model, mock_client):
        """Test that persistent throttling raises a retryable upstream error."""
        mock_client.invoke_model.side_effect = client_error("ThrottlingException")

        with pytest.raises(UpstreamServiceError) as exc_info:
            model.embed_text("text")

        assert exc_info.value.error.code == "RETRIES_EXHAUSTED"
        assert exc_info.value.retryable is True
        assert mock_client.invoke_model.call_count == 3
        assert mock_sleep.call_count == 2

    @patch('services.embedding_model.time.sleep')
    def test_permanent_error_not_retried(self, mock_sleep, model, mock_client):
        """Test that access denied fails immediately."""
        mock_client.invoke_model.side_effect = client_error("AccessDeniedException")

        with pytest.raises(UpstreamServiceError) as exc_info:
            model.embed_text("text")

        assert exc_info.value.retryable is False
        assert "AccessDeniedException" in exc_info.value.error.message
        assert mock_client.invoke_model.call_count == 1
        mock_sleep.assert_not_called()

    def test_missing_credentials_not_retried(self, model, mock_client):
        """Test that non-network botocore errors fail immediately."""
        mock_client.invoke_model.side_effect = NoCredentialsError()

        with pytest.raises(UpstreamServiceError, match="NoCredentialsError"):
            model.embed_text("text")

        assert mock_client.invoke_model.call_count == 1

    def test_embed_batch_sequential(self, model, mock_client):
        """Test batch embedding calls Bedrock once per text, in order."""
        mock_client.invoke_model.side_effect = [
            bedrock_body({"embedding": [1.0, 0.0, 0.0]}),
            bedrock_body({"embedding": [0.0, 1.0, 0.0]}),
        ]

        result = model.embed_batch(["first", "second"])

        assert result == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
        bodies = [json.loads(c.kwargs["body"]) for c in mock_client.invoke_model.call_args_list]
        assert bodies == [{"inputText": "first"}, {"inputText": "second"}]

    def test_embed_batch_empty_list(self, model):
        """Test embed_batch raises error for empty list."""
        with pytest.raises(ValueError, match="Texts list cannot be empty"):
            model.embed_batch([])

    def test_embed_batch_with_empty_string(self, model):
        """Test embed_batch raises error when a string is empty."""
        with pytest.raises(ValueError, match="contains empty strings"):
            model.embed_batch(["ok", "  "])

    def test_same_text_same_vector(self, model, mock_client):
        """Test that a deterministic model yields identical vectors."""
        mock_client.invoke_model.side_effect = lambda **kwargs: bedrock_body({"embedding": [0.5, 0.5, 0.5]})

        assert model.embed_text("orders") == model.embed_text("orders")

    def test_warmup_success(self, model, mock_client):
        """Test warmup returns True when the call works."""
        mock_client.invoke_model.return_value = bedrock_body({"embedding": [0.1, 0.2, 0.3]})
        assert model.warmup() is True

    def test_warmup_failure(self, model, mock_client):
        """Test warmup returns False instead of raising."""
        mock_client.invoke_model.side_effect = client_error("ValidationException")
        assert model.warmup() is False
