"""One-shot indexing job: chunk the schema, embed each chunk, upsert it."""
import logging
import time
from typing import Iterable, Optional

from models.index import IndexEntry, IndexingReport
from services.chunking_engine import ChunkingEngine
from services.embedding_model import EmbeddingModel
from services.schema_loader import schema_fingerprint
from services.vector_store import VectorStore

logger = logging.getLogger(__name__)


class SchemaIndexer:
    """
    Populate the vector index from a schema document.

    Chunks are embedded and upserted one at a time, in id order. There is no
    transaction around the run: a failing chunk is recorded in the report and
    the run moves on, so the collection may be partially indexed afterwards.
    Re-run with ``only_ids=report.failed`` to fill the gaps. A full run (no
    ``only_ids``) also removes points written for any other schema version.

    Indexing must not overlap with live querying; Qdrant gives no read
    consistency guarantee across a concurrent rewrite of the same ids.
    """

    def __init__(
        self,
        chunking_engine: ChunkingEngine,
        embedding_model: EmbeddingModel,
        vector_store: VectorStore
    ):
        self.chunking_engine = chunking_engine
        self.embedding_model = embedding_model
        self.vector_store = vector_store

    def run(
        self,
        raw_schema: str,
        force: bool = False,
        only_ids: Optional[Iterable[int]] = None
    ) -> IndexingReport:
        """
        Index a schema.

        Args:
            raw_schema: Full schema text
            force: Re-index even if the collection already matches this schema
            only_ids: Restrict the run to these chunk ids (resume after failures)

        Returns:
            IndexingReport with indexed and failed chunk ids

        Raises:
            UpstreamServiceError: If the idempotency check or the pruning of
                other schema versions cannot reach the index
        """
        schema_hash = schema_fingerprint(raw_schema)
        chunks = self.chunking_engine.chunk(raw_schema)
        report = IndexingReport(schema_hash=schema_hash, total_chunks=len(chunks))

        if not chunks:
            logger.warning("Schema produced no chunks, nothing to index")
            return report

        if only_ids is not None:
            wanted = set(only_ids)
            unknown = wanted - {chunk.chunk_id for chunk in chunks}
            if unknown:
                logger.warning(f"Ignoring unknown chunk ids: {sorted(unknown)}")
            chunks = [chunk for chunk in chunks if chunk.chunk_id in wanted]
        elif not force and self._already_indexed(schema_hash, len(chunks)):
            logger.info(f"Collection already holds all {len(chunks)} chunks of schema {schema_hash[:12]}, skipping")
            report.skipped = True
            return report

        logger.info(f"Indexing {len(chunks)} chunks (schema {schema_hash[:12]})...")
        start_time = time.time()

        for chunk in chunks:
            try:
                entry = IndexEntry(
                    point_id=chunk.chunk_id,
                    vector=self.embedding_model.embed_text(chunk.text),
                    payload={"text": chunk.text, "schema_hash": schema_hash}
                )
                self.vector_store.upsert(entry.point_id, entry.vector, entry.payload)
                report.indexed_ids.append(chunk.chunk_id)
                logger.debug(f"Indexed chunk {chunk.chunk_id}")
            except Exception as e:
                report.failed[chunk.chunk_id] = str(e)
                logger.error(f"Failed to index chunk {chunk.chunk_id}: {e}")

        if only_ids is None:
            report.pruned = self._prune_other_versions(schema_hash)

        elapsed = time.time() - start_time
        logger.info(
            f"Indexed {len(report.indexed_ids)}/{len(chunks)} chunks in {elapsed:.1f}s "
            f"({len(report.failed)} failed, {report.pruned} stale points removed)"
        )
        return report

    def is_stale(self, raw_schema: str) -> bool:
        """
        Check whether the index content differs from the given schema.

        True when the number of points tagged with this schema's fingerprint
        is not the number of chunks it produces, or when points from another
        schema version are present.
        """
        schema_hash = schema_fingerprint(raw_schema)
        expected = len(self.chunking_engine.chunk(raw_schema))
        matching = self.vector_store.count(schema_hash=schema_hash)
        total = self.vector_store.count()
        return matching != expected or total != expected

    def _already_indexed(self, schema_hash: str, expected: int) -> bool:
        if not self.vector_store.collection_exists():
            return False
        matching = self.vector_store.count(schema_hash=schema_hash)
        return matching == expected and self.vector_store.count() == expected

    def _prune_other_versions(self, schema_hash: str) -> int:
        leftover = self.vector_store.count() - self.vector_store.count(schema_hash=schema_hash)
        if leftover > 0:
            self.vector_store.delete_other_versions(schema_hash)
            logger.info(f"Removed {leftover} points left over from previous schema versions")
        return max(leftover, 0)
