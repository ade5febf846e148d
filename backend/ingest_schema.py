"""
Schema Ingestion Script for the SQL generation service.

This script:
1. Ensures the Qdrant collection exists
2. Loads the reference schema file
3. Chunks it into statements
4. Generates embeddings using Amazon Bedrock
5. Upserts every chunk into the collection

Usage:
    python ingest_schema.py [--schema database.sql] [--force] [--only-ids 3,7]
    python ingest_schema.py --create-collection
    python ingest_schema.py --check
"""
import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from config import SCHEMA_PATH, COLLECTION_NAME, LOG_LEVEL, LOG_FORMAT
from logger import setup_logging
from services.chunking_engine import ChunkingEngine
from services.embedding_model import EmbeddingModel
from services.errors import ServiceError
from services.indexer import SchemaIndexer
from services.schema_loader import SchemaLoader
from services.vector_store import VectorStore

logger = logging.getLogger(__name__)


def parse_ids(value: str) -> List[int]:
    """Parse a comma separated list of chunk ids."""
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid chunk id list: {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Index the reference SQL schema into Qdrant")
    parser.add_argument("--schema", default=SCHEMA_PATH, help="Path to the .sql schema file")
    parser.add_argument("--force", action="store_true", help="Re-index even if the collection is up to date")
    parser.add_argument("--only-ids", type=parse_ids, default=None, help="Comma separated chunk ids to (re)index")
    parser.add_argument(
        "--create-collection",
        action="store_true",
        help="Create the collection and exit; fails if it already exists"
    )
    parser.add_argument("--check", action="store_true", help="Report whether the index is stale and exit")
    return parser


def check_index(vector_store: VectorStore, schema_path: str) -> int:
    """Report staleness without writing to the index. Returns 1 if stale."""
    raw_schema = SchemaLoader(schema_path).load()

    if not vector_store.collection_exists():
        logger.info(f"Collection {vector_store.collection_name} does not exist, index is STALE")
        return 1

    indexer = SchemaIndexer(ChunkingEngine(), EmbeddingModel(), vector_store)
    stale = indexer.is_stale(raw_schema)
    logger.info("Index is STALE, re-run ingestion" if stale else "Index is up to date")
    return 1 if stale else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main ingestion process. Returns the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        logger.info("=" * 60)
        logger.info(f"Starting schema ingestion into collection {COLLECTION_NAME}")
        logger.info("=" * 60)

        vector_store = VectorStore()

        if args.create_collection:
            vector_store.create_collection()
            logger.info("Collection created")
            return 0

        if args.check:
            return check_index(vector_store, args.schema)

        # Step 1: Collection
        logger.info("[1/4] Ensuring collection exists...")
        created = vector_store.ensure_collection()
        logger.info("Collection created" if created else "Collection already present")

        # Step 2: Schema
        logger.info("[2/4] Loading schema...")
        raw_schema = SchemaLoader(args.schema).load()

        indexer = SchemaIndexer(ChunkingEngine(), EmbeddingModel(), vector_store)

        # Step 3: Warm up embedding model
        logger.info("[3/4] Warming up embedding model...")
        indexer.embedding_model.warmup()

        # Step 4: Chunk, embed, upsert
        logger.info("[4/4] Chunking, embedding and storing...")
        report = indexer.run(raw_schema, force=args.force, only_ids=args.only_ids)

        # Summary
        logger.info("=" * 60)
        if report.skipped:
            logger.info("INGESTION SKIPPED: collection already matches this schema (use --force)")
        else:
            logger.info(f"Chunks in schema: {report.total_chunks}")
            logger.info(f"Chunks indexed: {len(report.indexed_ids)}")
            logger.info(f"Chunks failed: {len(report.failed)}")
            logger.info(f"Stale points removed: {report.pruned}")
        logger.info("=" * 60)

        if report.failed:
            failed_ids = ",".join(str(chunk_id) for chunk_id in sorted(report.failed))
            logger.error(f"Partial index. Resume with: python ingest_schema.py --only-ids {failed_ids}")
            return 1
        return 0

    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted by user")
        return 1
    except (ServiceError, FileNotFoundError) as e:
        logger.error(f"Ingestion failed: {str(e)}")
        return 1
    except Exception as e:
        logger.error(f"Ingestion failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    setup_logging(LOG_LEVEL, LOG_FORMAT)
    sys.exit(main())
