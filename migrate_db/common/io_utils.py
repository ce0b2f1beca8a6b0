"""
IO utilities for writing migrated identities and rejected records.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional, TextIO
from datetime import datetime, UTC

logger = logging.getLogger(__name__)


def get_output_filename(stem: str, suffix: str = "") -> str:
    """Generate a timestamped JSONL output filename."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{stem}{suffix}_{timestamp}.jsonl"


class JsonlWriter:
    """Appends records to a JSONL file, opening it on the first write."""

    def __init__(self, output_path: Path):
        self.output_path = Path(output_path)
        self.count = 0
        self._file: Optional[TextIO] = None

    def write(self, record: Dict[str, Any]) -> None:
        try:
            if self._file is None:
                self.output_path.parent.mkdir(parents=True, exist_ok=True)
                self._file = open(self.output_path, 'a')
            self._file.write(json.dumps(record, default=str) + '\n')
            self.count += 1
        except OSError as e:
            logger.error(f"Error writing to {self.output_path}: {e}")
            raise

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            logger.info(f"Wrote {self.count} records to {self.output_path}")

    def __enter__(self) -> "JsonlWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def make_rejected_record(record: Dict[str, Any], error_reason: str, source: str) -> Dict[str, Any]:
    """Wrap a rejected record with the reason it was rejected."""
    return {
        "original_record": record,
        "error_reason": error_reason,
        "source": source,
        "rejected_at": datetime.now(UTC).isoformat()
    }
