import pathlib
from typing import Dict, Any, List, Optional

import pytest


class MemoryCursor:
    """In-memory cursor; fails with error once docs are exhausted, if given."""

    def __init__(self, docs: List[Dict[str, Any]], error: Optional[Exception] = None):
        self.docs = list(docs)
        self.error = error
        self.pos = -1
        self.closed = False
        self.reads = 0

    def advance(self) -> bool:
        if self.pos + 1 >= len(self.docs):
            self.pos = len(self.docs)
            return False
        self.pos += 1
        self.reads += 1
        return True

    def current(self) -> Dict[str, Any]:
        return self.docs[self.pos]

    def last_error(self) -> Optional[Exception]:
        if self.pos >= len(self.docs):
            return self.error
        return None

    def close(self) -> None:
        self.closed = True


class MemoryStore:
    """In-memory legacy store keyed by collection name."""

    def __init__(self, collections: Dict[str, List[Dict[str, Any]]], error: Optional[Exception] = None):
        self.collections = collections
        self.error = error
        self.opened: List[str] = []
        self.cursors: List[MemoryCursor] = []

    def find(self, collection: str) -> MemoryCursor:
        self.opened.append(collection)
        cursor = MemoryCursor(self.collections.get(collection, []), self.error)
        self.cursors.append(cursor)
        return cursor


@pytest.fixture(scope="session")
def repo_root():
    """Return the root directory of the project."""
    return pathlib.Path(__file__).resolve().parents[1]


@pytest.fixture(scope="session")
def canonical_schema_path(repo_root):
    return repo_root / "schemas" / "identity_canonical.schema.json"


@pytest.fixture(scope="session")
def legacy_schema_path(repo_root):
    return repo_root / "schemas" / "legacy_identity.schema.json"


@pytest.fixture
def make_store():
    """Build a MemoryStore holding docs in the identities collection."""
    def _make(docs, error=None, collection="identities"):
        return MemoryStore({collection: docs}, error)
    return _make
