"""LLM Client for SQL generation with Anthropic Claude on Amazon Bedrock."""
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError

from config import REGION, GENERATION_MODEL_ID, ANTHROPIC_VERSION, MAX_TOKENS, TEMPERATURE
from services.errors import ErrorDetail, ResponseParseError, UpstreamServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
- You are an expert in relational databases who creates accurate and optimized SQL queries.
- Return only the raw query, ready to be copied and executed in the database, in the most optimized and performative way.
- Return the SQL without line breaks.
"""

# Bedrock error code -> (our code, user-facing message, retryable)
_CLIENT_ERROR_MAP = {
    "ThrottlingException": ("RATE_LIMIT_ERROR", "Rate limit exceeded. Please try again in a few moments.", True),
    "TooManyRequestsException": ("RATE_LIMIT_ERROR", "Rate limit exceeded. Please try again in a few moments.", True),
    "AccessDeniedException": ("AUTHENTICATION_ERROR", "Access to the generation model was denied.", False),
    "UnrecognizedClientException": ("AUTHENTICATION_ERROR", "Access to the generation model was denied.", False),
    "ModelTimeoutException": ("TIMEOUT_ERROR", "Request timed out. Please try again.", True),
    "ServiceUnavailableException": ("API_ERROR", "Generation model is temporarily unavailable.", True),
    "ModelNotReadyException": ("API_ERROR", "Generation model is temporarily unavailable.", True),
}


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: Any  # Generated SQL string, or the raw decoded body when no text field exists
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


class LLMClientError(UpstreamServiceError):
    """Generation call failed; carries a structured ErrorDetail."""


class LLMClient:
    """Client for generating SQL from a prompt grounded on retrieved schema context."""

    def __init__(
        self,
        region: str = REGION,
        model_id: str = GENERATION_MODEL_ID,
        max_tokens: int = MAX_TOKENS,
        temperature: float = TEMPERATURE,
        client: Optional[Any] = None
    ):
        """
        Initialize LLM client.

        Args:
            region: AWS region hosting the Bedrock runtime
            model_id: Bedrock model identifier
            max_tokens: Output token bound
            temperature: Sampling temperature (low for deterministic SQL)
            client: Pre-built bedrock-runtime client (built from region if None)
        """
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = client or boto3.client("bedrock-runtime", region_name=region)
        logger.info(f"LLMClient initialized with model: {model_id}")

    def generate(self, prompt: str, context: str = "") -> LLMResponse:
        """
        Generate SQL for a prompt.

        Args:
            prompt: User question
            context: Retrieved schema context; may be empty

        Returns:
            LLMResponse with generated text, token counts and latency

        Raises:
            LLMClientError: Structured error when the Bedrock call fails
            ResponseParseError: If the response body is not JSON
        """
        start_time = time.time()
        body = self.build_request_body(prompt, context, self.max_tokens, self.temperature)

        try:
            logger.debug(f"Generating SQL with model: {self.model_id}")

            response = self.client.invoke_model(
                modelId=self.model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(body)
            )
            raw_output = response["body"].read()

        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            our_code, message, retryable = _CLIENT_ERROR_MAP.get(
                code, ("API_ERROR", f"Bedrock API error: {code}", False)
            )
            raise self._error(our_code, message, retryable, start_time, e) from e

        except (ConnectTimeoutError, ReadTimeoutError) as e:
            raise self._error("TIMEOUT_ERROR", "Request timed out. Please try again.", True, start_time, e) from e

        except BotoCoreError as e:
            raise self._error(
                "API_ERROR", f"Bedrock client error: {type(e).__name__}", False, start_time, e
            ) from e

        latency_ms = int((time.time() - start_time) * 1000)

        try:
            output = json.loads(raw_output) if raw_output else {}
        except (TypeError, ValueError) as e:
            logger.error(f"Unparsable generation response: model={self.model_id}")
            raise ResponseParseError.create(
                code="PARSE_ERROR",
                message="Generation response is not valid JSON",
                details={"model": self.model_id, "latency_ms": latency_ms}
            ) from e

        text = self.extract_text(output)
        usage = (output.get("usage") or {}) if isinstance(output, dict) else {}
        tokens_input = int(usage.get("input_tokens", 0))
        tokens_output = int(usage.get("output_tokens", 0))

        logger.info(
            f"Generated response: model={self.model_id}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )

        return LLMResponse(
            text=text,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=self.model_id
        )

    def _error(
        self,
        code: str,
        message: str,
        retryable: bool,
        start_time: float,
        original: Exception
    ) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        error = ErrorDetail(
            code=code,
            message=message,
            details={
                "model": self.model_id,
                "latency_ms": latency_ms,
                "original_error": str(original),
                "error_type": type(original).__name__
            }
        )
        logger.error(
            f"Generation error: model={self.model_id}, code={code}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": code}
        )
        return LLMClientError(error, retryable=retryable)

    @staticmethod
    def build_request_body(
        prompt: str,
        context: str,
        max_tokens: int = MAX_TOKENS,
        temperature: float = TEMPERATURE
    ) -> Dict[str, Any]:
        """
        Build the Anthropic messages body: context block, then the prompt.

        Args:
            prompt: User question
            context: Retrieved schema context ("" is allowed)

        Returns:
            Request body ready to be JSON encoded
        """
        return {
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": f"Relevant Context:\n{context}"},
                        {"type": "text", "text": prompt},
                    ],
                }
            ],
            "system": SYSTEM_PROMPT,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "anthropic_version": ANTHROPIC_VERSION,
        }

    @staticmethod
    def extract_text(output: Any) -> Any:
        """
        Pull the generated text out of a decoded model response.

        Checks content[0].text, then the legacy output_text and completion
        fields; falls back to the whole object. The text is returned as-is.
        """
        if not isinstance(output, dict):
            return output

        content = output.get("content")
        if isinstance(content, list) and content:
            first = content[0]
            if isinstance(first, dict) and first.get("text") is not None:
                return first["text"]

        for legacy_field in ("output_text", "completion"):
            if output.get(legacy_field):
                return output[legacy_field]

        logger.warning("Generation response has no text field, returning raw output")
        return output
