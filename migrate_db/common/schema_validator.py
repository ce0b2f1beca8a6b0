"""
JSON schema checks for identity records.

Legacy documents are checked before decoding so that shape errors are
reported with the schema's message; canonical identities are checked before
they are written to the destination files.
"""
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Any, Tuple, Optional
import jsonschema
from jsonschema import ValidationError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=8)
def _load_schema_cached(schema_path: str) -> Dict[str, Any]:
    with open(schema_path, 'r') as f:
        return json.load(f)


def load_schema(schema_path: Path) -> Dict[str, Any]:
    """Load an identity schema. Each path is read once per process."""
    try:
        return _load_schema_cached(str(schema_path))
    except (json.JSONDecodeError, FileNotFoundError) as e:
        logger.error(f"Failed to load identity schema from {schema_path}: {e}")
        raise


def check_identity_record(record: Dict[str, Any], schema: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Check one identity record against a loaded schema.

    Returns:
        Tuple of (is_valid, error_message); the message names the first
        offending field
    """
    try:
        jsonschema.validate(instance=record, schema=schema)
        return True, None
    except ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path)
        return False, f"{path}: {e.message}" if path else e.message


def validate_legacy_identity(doc: Dict[str, Any], schema_path: Path) -> Tuple[bool, Optional[str]]:
    """Check a raw legacy identity document, as read from the cursor."""
    return check_identity_record(doc, load_schema(schema_path))


def validate_canonical_identity(record: Dict[str, Any], schema_path: Path) -> Tuple[bool, Optional[str]]:
    """Check a canonical identity in its to_dict() form."""
    return check_identity_record(record, load_schema(schema_path))
