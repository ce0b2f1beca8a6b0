"""
Cursor and store abstractions over the legacy identity data.

LegacySource only depends on the Cursor and LegacyStore protocols. The
JSONL implementation reads a dump of the legacy database, one
<collection>.jsonl file per collection, without loading it into memory.
"""
import json
import logging
from pathlib import Path
from typing import BinaryIO, Dict, Any, Optional, Protocol

logger = logging.getLogger(__name__)


class Cursor(Protocol):
    """Sequential read handle over a collection of raw documents."""

    def advance(self) -> bool:
        """Move to the next document. False when exhausted or failed."""
        ...

    def current(self) -> Dict[str, Any]:
        ...

    def last_error(self) -> Optional[Exception]:
        ...

    def close(self) -> None:
        ...


class LegacyStore(Protocol):
    """An open handle on the legacy database."""

    def find(self, collection: str) -> Cursor:
        """Open a cursor over every document in collection."""
        ...


class JsonlCursor:
    """Cursor over a JSONL file, reading one line per advance."""

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self._file: Optional[BinaryIO] = None
        self._line_num = 0
        self._doc: Optional[Dict[str, Any]] = None
        self._err: Optional[Exception] = None
        self._done = False

    def advance(self) -> bool:
        if self._done:
            return False
        try:
            if self._file is None:
                self._file = open(self.file_path, 'rb')
            for raw_line in self._file:
                self._line_num += 1
                raw_line = raw_line.strip()
                if not raw_line:
                    continue
                try:
                    line = raw_line.decode('utf-8')
                except UnicodeDecodeError as e:
                    logger.error(f"UTF-8 decode error at line {self._line_num} in {self.file_path}: {e}")
                    self._doc = {"error": f"UTF-8 decode error: {e}", "raw_line": raw_line.decode('utf-8', errors='replace')}
                    return True
                try:
                    self._doc = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.error(f"JSON decode error at line {self._line_num} in {self.file_path}: {e}")
                    # Surfaces downstream as a malformed document.
                    self._doc = {"error": f"JSON decode error: {e}", "raw_line": line}
                return True
        except OSError as e:
            logger.error(f"Error reading {self.file_path}: {e}")
            self._err = e
        self._done = True
        self._doc = None
        self.close()
        return False

    def current(self) -> Dict[str, Any]:
        return self._doc

    def last_error(self) -> Optional[Exception]:
        return self._err

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class JsonlLegacyStore:
    """A legacy database dumped as <collection>.jsonl files in root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def collection_path(self, collection: str) -> Path:
        return self.root / f"{collection}.jsonl"

    def find(self, collection: str) -> JsonlCursor:
        return JsonlCursor(self.collection_path(collection))
