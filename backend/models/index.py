"""Index data models."""
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class IndexEntry:
    """A point stored in the vector index."""
    point_id: int
    vector: List[float]
    payload: Dict[str, Any]


@dataclass
class IndexingReport:
    """Outcome of one indexing run."""
    schema_hash: str
    total_chunks: int
    indexed_ids: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)  # chunk_id -> error message
    skipped: bool = False
    pruned: int = 0  # points of other schema versions removed

    @property
    def succeeded(self) -> bool:
        """True when no chunk failed."""
        return not self.failed
