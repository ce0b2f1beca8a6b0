"""
Streaming source of canonical identities converted from a legacy store.
"""
import logging
from pathlib import Path
from typing import Dict, Any, Callable, Iterator, Optional

from .converter import convert_raw
from .cursors import Cursor, LegacyStore
from .errors import ConversionError, CursorError
from .identity import CanonicalIdentity

logger = logging.getLogger(__name__)

# Receives each conversion failure together with the offending raw document.
SkipSink = Callable[[ConversionError, Dict[str, Any]], None]

IDENTITIES_COLLECTION = "identities"


def log_skipped(error: ConversionError, raw: Dict[str, Any]) -> None:
    """Default skip sink: one warning line per skipped record."""
    logger.warning(f"cannot convert identity (skipping): {error}; document: {raw!r}")


class LegacySource:
    """
    Iterates over every identity in the legacy store, converting each one.

    Documents that cannot be converted are reported to on_skip and skipped.
    A failure of the underlying cursor ends the iteration and is reported by
    error(). Not safe for concurrent use.
    """

    def __init__(self, store: LegacyStore, on_skip: Optional[SkipSink] = None,
                 collection: str = IDENTITIES_COLLECTION, schema_path: Optional[Path] = None):
        """
        Args:
            store: Open legacy store handle
            on_skip: Called for each document that fails conversion
            collection: Collection holding the legacy identities
            schema_path: Optional legacy schema checked before conversion
        """
        self.store = store
        self.on_skip = on_skip or log_skipped
        self.collection = collection
        self.schema_path = schema_path
        self.stats = {
            "total_records": 0,
            "converted_records": 0,
            "skipped_records": 0,
        }
        self._cursor: Optional[Cursor] = None
        self._identity: Optional[CanonicalIdentity] = None

    def advance(self) -> bool:
        """
        Move to the next convertible identity.

        Returns:
            True if current() holds a new identity, False once the cursor is
            exhausted or has failed
        """
        if self._cursor is None:
            logger.debug(f"Opening cursor over {self.collection}")
            self._cursor = self.store.find(self.collection)
        while self._cursor.advance():
            raw = self._cursor.current()
            self.stats["total_records"] += 1
            try:
                identity = convert_raw(raw, self.schema_path)
            except ConversionError as e:
                self.stats["skipped_records"] += 1
                self.on_skip(e, raw)
                continue
            self.stats["converted_records"] += 1
            self._identity = identity
            return True
        return False

    def current(self) -> Optional[CanonicalIdentity]:
        """The identity produced by the last successful advance()."""
        return self._identity

    def error(self) -> Optional[CursorError]:
        """The cursor's terminal error, if any."""
        if self._cursor is None:
            return None
        err = self._cursor.last_error()
        if err is None:
            return None
        wrapped = CursorError(f"cannot read legacy {self.collection}: {err}")
        wrapped.__cause__ = err
        return wrapped

    def close(self) -> None:
        if self._cursor is not None:
            self._cursor.close()

    def __iter__(self) -> Iterator[CanonicalIdentity]:
        while self.advance():
            yield self.current()

    def __enter__(self) -> "LegacySource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
