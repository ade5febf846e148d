"""Schema source loading for the indexing job."""
import hashlib
import logging
import os

from config import SCHEMA_PATH

logger = logging.getLogger(__name__)


def schema_fingerprint(raw_schema: str) -> str:
    """SHA-256 of the schema text; stored with every point to detect stale indexes."""
    return hashlib.sha256(raw_schema.encode("utf-8")).hexdigest()


class SchemaLoader:
    """Reads the single reference schema file into memory."""

    def __init__(self, schema_path: str = SCHEMA_PATH):
        """
        Initialize SchemaLoader.

        Args:
            schema_path: Path to the .sql schema file
        """
        self.schema_path = schema_path

    def load(self) -> str:
        """
        Load the full schema text.

        Returns:
            Schema file contents

        Raises:
            FileNotFoundError: If the schema file does not exist
        """
        if not os.path.exists(self.schema_path):
            logger.error(f"Schema file not found: {self.schema_path}")
            raise FileNotFoundError(f"Schema file not found: {self.schema_path}")

        with open(self.schema_path, "r", encoding="utf-8") as f:
            raw_schema = f.read()

        logger.info(f"Loaded schema {self.schema_path} ({len(raw_schema)} chars)")
        return raw_schema
