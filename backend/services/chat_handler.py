"""Request handling shared by the HTTP and Lambda entry points."""
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from models.api import ChatRequest, ChatResponse, ErrorResponse
from services.errors import ServiceError
from services.llm_client import LLMClient
from services.retrieval_engine import RetrievalEngine

logger = logging.getLogger(__name__)

MISSING_PROMPT_ERROR = "missing 'prompt' in the request body."
INVALID_JSON_ERROR = "request body is not valid JSON."
GENERATION_FAILED_ERROR = "Failed to generate SQL query"


@dataclass
class HandlerResult:
    """Status code and JSON body, independent of the hosting boundary."""
    status_code: int
    body: Dict[str, Any]


class ChatRequestHandler:
    """
    Turn a `{prompt}` request into generated SQL.

    A request without a usable prompt is rejected with 400 before any
    upstream call; no default prompt is substituted.
    """

    def __init__(self, retrieval_engine: RetrievalEngine, llm_client: LLMClient):
        self.retrieval_engine = retrieval_engine
        self.llm_client = llm_client

    def handle(self, raw_body: Optional[Union[str, bytes, Dict[str, Any]]]) -> HandlerResult:
        """
        Process one request.

        Args:
            raw_body: Raw JSON body, an already decoded dict, or None

        Returns:
            HandlerResult with 200 `{prompt, response}`, 400 `{error}` or
            500 `{error, details}`
        """
        try:
            body = self._decode_body(raw_body)
        except ValueError:
            logger.warning("Rejected request with invalid JSON body")
            return error_result(400, INVALID_JSON_ERROR)

        try:
            prompt = ChatRequest.model_validate(body).prompt
        except ValidationError:
            logger.warning("Rejected request without prompt")
            return error_result(400, MISSING_PROMPT_ERROR)

        start_time = time.time()
        logger.info(f"Processing prompt: {prompt[:100]}...")

        try:
            context = self.retrieval_engine.build_context(prompt)
            llm_response = self.llm_client.generate(prompt, context)
        except ServiceError as e:
            logger.error(
                f"Upstream error while generating SQL: {e.error.code}: {e.error.message}",
                exc_info=True,
                extra={"error_code": e.error.code}
            )
            return error_result(500, GENERATION_FAILED_ERROR, e.error.message)
        except Exception as e:
            logger.error(f"Unexpected error while generating SQL: {e}", exc_info=True)
            return error_result(500, GENERATION_FAILED_ERROR, str(e) or type(e).__name__)

        total_latency_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Prompt processed successfully in {total_latency_ms}ms")

        return HandlerResult(
            status_code=200,
            body=ChatResponse(prompt=prompt, response=llm_response.text).model_dump()
        )

    @staticmethod
    def _decode_body(raw_body: Optional[Union[str, bytes, Dict[str, Any]]]) -> Any:
        if raw_body is None:
            return {}
        if isinstance(raw_body, dict):
            return raw_body
        if isinstance(raw_body, bytes):
            raw_body = raw_body.decode("utf-8")
        if not raw_body.strip():
            return {}
        return json.loads(raw_body)


def error_result(status_code: int, error: str, details: Optional[str] = None) -> HandlerResult:
    """Build an `{error, details?}` result."""
    return HandlerResult(
        status_code=status_code,
        body=ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    )
