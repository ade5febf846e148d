"""
Lambda handler for API Gateway (HTTP API, payload v2) chat requests.

Environment variables:
- REGION: AWS region for Bedrock
- QDRANT_URL / QDRANT_API_KEY: vector index endpoint
- LOG_LEVEL / LOG_FORMAT: logging
"""
import base64
import json
import logging
from typing import Any, Dict, Optional

from config import LOG_LEVEL, LOG_FORMAT
from logger import setup_logging
from services.chat_handler import ChatRequestHandler, GENERATION_FAILED_ERROR, INVALID_JSON_ERROR, error_result
from services.embedding_model import EmbeddingModel
from services.llm_client import LLMClient
from services.retrieval_engine import RetrievalEngine
from services.vector_store import VectorStore

if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

RESPONSE_HEADERS = {"Content-Type": "application/json"}

# Built on first invocation and reused while the execution environment is warm
_chat_handler: Optional[ChatRequestHandler] = None


def get_chat_handler() -> ChatRequestHandler:
    """Return the process-wide handler, constructing it on first use."""
    global _chat_handler
    if _chat_handler is None:
        embedding_model = EmbeddingModel()
        retrieval_engine = RetrievalEngine(VectorStore(), embedding_model)
        _chat_handler = ChatRequestHandler(retrieval_engine, LLMClient())
        logger.info("Initialized chat handler")
    return _chat_handler


def extract_body(event: Dict[str, Any]) -> Optional[str]:
    """
    Get the raw request body from an API Gateway event.

    Args:
        event: API Gateway proxy event

    Returns:
        Body text, or None when the request has no body
    """
    body = event.get("body")
    if body is None:
        return None
    if event.get("isBase64Encoded"):
        return base64.b64decode(body).decode("utf-8")
    return body


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """
    Lambda entry point.

    Args:
        event: API Gateway proxy event
        context: Lambda context (unused)

    Returns:
        API Gateway proxy response
    """
    try:
        raw_body = extract_body(event)
    except ValueError:
        # Invalid base64 or non UTF-8 payload
        logger.warning("Could not decode request body")
        result = error_result(400, INVALID_JSON_ERROR)
    else:
        try:
            chat_handler = get_chat_handler()
        except Exception as e:
            logger.error(f"Failed to initialize chat handler: {e}", exc_info=True)
            result = error_result(500, GENERATION_FAILED_ERROR, str(e) or type(e).__name__)
        else:
            result = chat_handler.handle(raw_body)

    return {
        "statusCode": result.status_code,
        "headers": RESPONSE_HEADERS,
        "body": json.dumps(result.body),
    }
