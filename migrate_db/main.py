"""
Command line for migrating a legacy identity dump into canonical identities.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from migrate_db.common.cursors import JsonlLegacyStore, LegacyStore
from migrate_db.common.errors import ConversionError, MigrationError
from migrate_db.common.io_utils import JsonlWriter, get_output_filename, make_rejected_record
from migrate_db.common.legacy_source import IDENTITIES_COLLECTION, LegacySource, log_skipped
from migrate_db.common.schema_validator import validate_canonical_identity

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "collection": IDENTITIES_COLLECTION,
    "legacy_schema": "schemas/legacy_identity.schema.json",
    "canonical_schema": "schemas/identity_canonical.schema.json",
    "output_dir": "migrated",
}


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load migration configuration, falling back to the defaults."""
    config = dict(DEFAULT_CONFIG)
    if config_path:
        with open(config_path, 'r') as f:
            config.update(yaml.safe_load(f) or {})
    return config


def run_migration(store: LegacyStore, output_dir: Path, canonical_schema_path: Path,
                  collection: str = IDENTITIES_COLLECTION,
                  legacy_schema_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Migrate every identity in the legacy store to JSONL output.

    Converted identities that pass the canonical schema are written under
    output_dir/identities, everything else under output_dir/rejected.

    Returns:
        Dictionary with migration statistics
    """
    output_dir = Path(output_dir)
    identities = JsonlWriter(output_dir / "identities" / get_output_filename(collection))
    rejected = JsonlWriter(output_dir / "rejected" / get_output_filename(collection, "_rejected"))

    def on_skip(error: ConversionError, raw: Dict[str, Any]) -> None:
        log_skipped(error, raw)
        rejected.write(make_rejected_record(raw, str(error), collection))

    stats = {
        "collection": collection,
        "status": "completed",
        "error": None,
        "written_records": 0,
        "rejected_records": 0,
    }

    logger.info(f"Starting migration of {collection}")
    source = LegacySource(store, on_skip=on_skip, collection=collection, schema_path=legacy_schema_path)
    with source, identities, rejected:
        for identity in source:
            record = identity.to_dict()
            is_valid, error_msg = validate_canonical_identity(record, canonical_schema_path)
            if not is_valid:
                logger.warning(f"Canonical validation failed for {identity.username}: {error_msg}")
                rejected.write(make_rejected_record(record, f"Canonical validation failed: {error_msg}", collection))
                stats["rejected_records"] += 1
                continue
            identities.write(record)
            stats["written_records"] += 1

        err = source.error()
        if err is not None:
            logger.error(f"Migration of {collection} stopped: {err}")
            stats["status"] = "failed"
            stats["error"] = str(err)

    stats.update(source.stats)
    stats["rejected_records"] += source.stats["skipped_records"]
    logger.info(
        f"Completed migration of {collection}: {stats['written_records']} written, "
        f"{stats['rejected_records']} rejected"
    )
    return stats


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Migrate legacy identities to the canonical identity model")
    parser.add_argument("legacy_dump", help="Directory holding the legacy <collection>.jsonl dump")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config", help="Path to YAML configuration file")
    parser.add_argument("--output-dir", help="Directory for migrated and rejected records")
    parser.add_argument("--collection", help="Legacy collection to migrate")
    parser.add_argument("--no-legacy-schema", action="store_true",
                        help="Do not check legacy documents against the legacy schema")

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        config = load_config(args.config)
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Cannot load config {args.config}: {e}")
        return 1

    legacy_dump = Path(args.legacy_dump)
    output_dir = Path(args.output_dir or config["output_dir"])
    collection = args.collection or config["collection"]
    canonical_schema_path = Path(config["canonical_schema"])
    legacy_schema_path = None if args.no_legacy_schema else Path(config["legacy_schema"])

    if not legacy_dump.is_dir():
        logging.error(f"Legacy dump directory does not exist: {legacy_dump}")
        return 1

    if not canonical_schema_path.exists():
        logging.error(f"Canonical schema file does not exist: {canonical_schema_path}")
        return 1

    if legacy_schema_path is not None and not legacy_schema_path.exists():
        logging.error(f"Legacy schema file does not exist: {legacy_schema_path}")
        return 1

    store = JsonlLegacyStore(legacy_dump)
    try:
        stats = run_migration(store, output_dir, canonical_schema_path, collection, legacy_schema_path)
    except (MigrationError, OSError) as e:
        logging.error(f"Migration failed: {e}")
        return 1

    logging.info("=== Migration Summary ===")
    logging.info(
        f"{collection}: {stats['status']} - {stats['total_records']} read, "
        f"{stats['written_records']} written, {stats['rejected_records']} rejected"
    )
    if stats["status"] == "failed":
        logging.error(f"{collection}: {stats['error']}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
