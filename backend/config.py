"""Configuration management for the schema-grounded SQL generation service."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# AWS / Bedrock
REGION = os.getenv("REGION", "us-east-1")

# Vector index (Qdrant)
QDRANT_URL = os.getenv("QDRANT_URL", "http://localhost:6333")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
QDRANT_TIMEOUT = float(os.getenv("QDRANT_TIMEOUT", "30"))

# Schema source for the indexing job
SCHEMA_PATH = os.getenv("SCHEMA_PATH", "database.sql")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration (API Gateway parity: any origin, POST + preflight)
CORS_ORIGINS = ["*"]
CORS_METHODS = ["POST", "OPTIONS"]

# Collection Configuration
COLLECTION_NAME = "sql_schema_1"
VECTOR_SIZE = 1536  # amazon.titan-embed-text-v1 output size
DISTANCE = "Cosine"

# Model Configuration
EMBEDDING_MODEL_ID = "amazon.titan-embed-text-v1"
GENERATION_MODEL_ID = "anthropic.claude-3-haiku-20240307-v1:0"
ANTHROPIC_VERSION = "bedrock-2023-05-31"
MAX_TOKENS = 500
TEMPERATURE = 0.2
EMBEDDING_MAX_RETRIES = int(os.getenv("EMBEDDING_MAX_RETRIES", "3"))

# Chunking Configuration
STATEMENT_DELIMITER = ";"

# Retrieval Configuration
TOP_K = 5

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
