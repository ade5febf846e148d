"""Main entry point for the SQL generation API."""
import logging
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS, CORS_METHODS
from logger import setup_logging
from services.chat_handler import ChatRequestHandler
from services.embedding_model import EmbeddingModel
from services.llm_client import LLMClient
from services.retrieval_engine import RetrievalEngine
from services.vector_store import VectorStore

# Initialize logging
if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Schema SQL RAG",
    description="Generates optimized SQL from natural-language questions grounded on a reference schema",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=CORS_METHODS,
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
chat_handler: ChatRequestHandler = None


def build_chat_handler() -> ChatRequestHandler:
    """Construct the service graph once; clients are shared by every request."""
    embedding_model = EmbeddingModel()
    vector_store = VectorStore()
    retrieval_engine = RetrievalEngine(vector_store, embedding_model)
    llm_client = LLMClient()
    return ChatRequestHandler(retrieval_engine, llm_client)


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global chat_handler

    logger.info("Initializing SQL generation services...")

    try:
        chat_handler = build_chat_handler()
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Schema SQL RAG API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "schema-sql-rag",
        "version": "1.0.0"
    }


@app.post("/chat")
async def chat_endpoint(request: Request) -> JSONResponse:
    """
    Generate SQL for the `prompt` in the JSON body.

    The body is read raw so that an empty or malformed body maps to the
    same 400 response the Lambda entry point produces.

    Returns:
        200 `{prompt, response}`, 400 `{error}` or 500 `{error, details}`
    """
    raw_body = await request.body()
    result = await run_in_threadpool(chat_handler.handle, raw_body)
    return JSONResponse(status_code=result.status_code, content=result.body)


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Schema SQL RAG API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
