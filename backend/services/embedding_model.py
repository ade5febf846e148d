"""Embedding model integration with Amazon Bedrock (Titan text embeddings)."""
import json
import random
import time
import logging
from typing import Any, List, Optional

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from config import REGION, EMBEDDING_MODEL_ID, VECTOR_SIZE, EMBEDDING_MAX_RETRIES
from services.errors import DimensionMismatchError, ResponseParseError, UpstreamServiceError

logger = logging.getLogger(__name__)

# Bedrock error codes worth another attempt
TRANSIENT_ERROR_CODES = {
    "ThrottlingException",
    "TooManyRequestsException",
    "ServiceUnavailableException",
    "ModelNotReadyException",
    "ModelTimeoutException",
    "InternalServerException",
}

TRANSIENT_BOTOCORE_ERRORS = (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)


class EmbeddingModel:
    """Wrapper for the Bedrock embedding model: text in, fixed-length vector out."""

    def __init__(
        self,
        region: str = REGION,
        model_id: str = EMBEDDING_MODEL_ID,
        dimensions: int = VECTOR_SIZE,
        max_retries: int = EMBEDDING_MAX_RETRIES,
        initial_delay: float = 0.5,
        max_delay: float = 8.0,
        client: Optional[Any] = None
    ):
        """
        Initialize the embedding model client.

        Args:
            region: AWS region hosting the Bedrock runtime
            model_id: Bedrock model identifier (default: amazon.titan-embed-text-v1)
            dimensions: Expected vector length; must match the vector index
            max_retries: Maximum attempts for transient failures
            initial_delay: Base delay in seconds for exponential backoff
            max_delay: Upper bound for a single backoff delay
            client: Pre-built bedrock-runtime client (built from region if None)
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.region = region
        self.model_id = model_id
        self.dimensions = dimensions
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.client = client or boto3.client("bedrock-runtime", region_name=region)

        logger.info(f"Initialized EmbeddingModel with model: {model_id} ({dimensions} dims)")

    def embed_text(self, text: str) -> List[float]:
        """
        Generate embedding for a single text string.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats

        Raises:
            ValueError: If text is empty
            UpstreamServiceError: If the Bedrock call fails
            ResponseParseError: If the response carries no usable embedding
            DimensionMismatchError: If the vector length differs from the configured size
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        vector = self._embed_with_retry(text)

        if len(vector) != self.dimensions:
            raise DimensionMismatchError.create(
                code="DIMENSION_MISMATCH",
                message=(
                    f"Embedding model returned {len(vector)} dimensions, "
                    f"expected {self.dimensions}"
                ),
                details={"model": self.model_id, "received": len(vector), "expected": self.dimensions}
            )
        return vector

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts, one call per text.

        Titan text embeddings accept a single input per request, so this is
        a sequential loop.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors in input order

        Raises:
            ValueError: If texts list is empty or contains empty strings
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")

        if any(not t or not t.strip() for t in texts):
            raise ValueError("Texts list contains empty strings")

        return [self.embed_text(text) for text in texts]

    def _embed_with_retry(self, text: str) -> List[float]:
        """
        Call Bedrock with exponential backoff and full jitter for transient errors.

        Args:
            text: Non-empty text to embed

        Returns:
            Raw embedding vector

        Raises:
            UpstreamServiceError: On permanent failure or when retries are exhausted
            ResponseParseError: If the response body cannot be decoded
        """
        body = json.dumps({"inputText": text})
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                start_time = time.time()

                response = self.client.invoke_model(
                    modelId=self.model_id,
                    contentType="application/json",
                    accept="application/json",
                    body=body
                )
                raw = response["body"].read()

                elapsed = time.time() - start_time
                logger.debug(f"Generated embedding for {len(text)} chars in {elapsed:.2f}s")

                return self._parse_embedding(raw)

            except ClientError as e:
                code = e.response.get("Error", {}).get("Code", "Unknown")
                if code not in TRANSIENT_ERROR_CODES:
                    logger.error(f"Bedrock embedding call failed with {code}: {e}")
                    raise UpstreamServiceError.create(
                        code="API_ERROR",
                        message=f"Embedding request failed: {code}",
                        details={"model": self.model_id, "original_error": str(e)},
                        retryable=False
                    ) from e
                last_error = e

            except TRANSIENT_BOTOCORE_ERRORS as e:
                last_error = e

            except BotoCoreError as e:
                logger.error(f"Bedrock embedding call failed: {e}")
                raise UpstreamServiceError.create(
                    code="API_ERROR",
                    message=f"Embedding request failed: {type(e).__name__}",
                    details={"model": self.model_id, "original_error": str(e)},
                    retryable=False
                ) from e

            if attempt < self.max_retries - 1:
                delay = random.uniform(0, min(self.max_delay, self.initial_delay * (2 ** attempt)))
                logger.warning(
                    f"Transient embedding error on attempt {attempt + 1}/{self.max_retries}: "
                    f"{last_error}. Retrying in {delay:.2f}s..."
                )
                time.sleep(delay)

        # All retries exhausted
        error_msg = f"Failed to generate embedding after {self.max_retries} attempts"
        logger.error(f"{error_msg}. Last error: {last_error}")
        raise UpstreamServiceError.create(
            code="RETRIES_EXHAUSTED",
            message=error_msg,
            details={"model": self.model_id, "original_error": str(last_error)},
            retryable=True
        )

    def _parse_embedding(self, raw: Any) -> List[float]:
        """Extract the `embedding` field from a Titan response body."""
        try:
            output = json.loads(raw) if raw else {}
        except (TypeError, ValueError) as e:
            raise ResponseParseError.create(
                code="PARSE_ERROR",
                message="Embedding response is not valid JSON",
                details={"model": self.model_id}
            ) from e

        embedding = output.get("embedding") if isinstance(output, dict) else None
        if not isinstance(embedding, list) or not embedding:
            raise ResponseParseError.create(
                code="PARSE_ERROR",
                message="Embedding response has no 'embedding' field",
                details={"model": self.model_id}
            )

        try:
            return [float(value) for value in embedding]
        except (TypeError, ValueError) as e:
            raise ResponseParseError.create(
                code="PARSE_ERROR",
                message="Embedding response contains non-numeric values",
                details={"model": self.model_id}
            ) from e

    def warmup(self) -> bool:
        """
        Warm up the model with a dummy query to avoid cold start delays.

        Returns:
            True if warmup successful, False otherwise
        """
        try:
            logger.info("Warming up embedding model...")
            start_time = time.time()

            self.embed_text("warmup query")

            elapsed = time.time() - start_time
            logger.info(f"Model warmup completed in {elapsed:.1f}s")
            return True

        except Exception as e:
            logger.error(f"Model warmup failed: {str(e)}")
            return False
