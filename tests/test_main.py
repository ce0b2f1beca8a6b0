"""
Tests for the migration runner and command line.
"""
import json
import shutil
import subprocess
from pathlib import Path
import pytest
import sys

# Add parent directory to path to import modules
sys.path.append(str(Path(__file__).parent.parent))

from migrate_db.common.cursors import JsonlLegacyStore
from migrate_db.main import DEFAULT_CONFIG, load_config, run_migration


def read_output(directory: Path):
    files = list(directory.glob("*.jsonl"))
    assert len(files) == 1
    return [json.loads(line) for line in files[0].read_text().splitlines()]


class TestLoadConfig:
    """Test configuration loading."""

    def test_defaults(self):
        assert load_config() == DEFAULT_CONFIG

    def test_file_overrides(self, tmp_path):
        config_file = tmp_path / "migrate.yaml"
        config_file.write_text("collection: users\noutput_dir: out\n")
        config = load_config(str(config_file))
        assert config["collection"] == "users"
        assert config["output_dir"] == "out"
        assert config["canonical_schema"] == DEFAULT_CONFIG["canonical_schema"]

    def test_shipped_config(self, repo_root):
        config = load_config(str(repo_root / "configs" / "migrate.yaml"))
        assert config["collection"] == "identities"


class TestRunMigration:
    """Test migrating a legacy store to JSONL output."""

    def test_fixture_dump(self, repo_root, tmp_path, canonical_schema_path, legacy_schema_path):
        store = JsonlLegacyStore(repo_root / "tests" / "fixtures")
        stats = run_migration(store, tmp_path, canonical_schema_path, legacy_schema_path=legacy_schema_path)

        assert stats["status"] == "completed"
        assert stats["error"] is None
        assert stats["total_records"] == 8
        assert stats["written_records"] == 4
        assert stats["rejected_records"] == 4

        records = read_output(tmp_path / "identities")
        assert [r["username"] for r in records] == ["alice", "bob", "carol", "erin"]
        by_name = {r["username"]: r for r in records}
        assert by_name["alice"]["provider_id"] == "idm:alice"
        assert by_name["alice"]["last_login"] == "2018-03-01T10:00:00+00:00"
        assert by_name["alice"]["last_discharge"] == "0001-01-01T00:00:00+00:00"
        assert by_name["bob"]["provider_id"] == "azure:bob@example.com"
        assert by_name["bob"]["extra_info"] == {"sshkeys": ["ssh-ed25519 AAAAC3Nza bob@laptop"]}
        assert by_name["bob"]["public_keys"] == ["AQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQE="]
        assert by_name["carol"]["provider_id"] == "usso:https://login.ubuntu.com/+id/abc123"
        assert by_name["erin"]["provider_id"] == "usso_macaroon:erin"
        assert by_name["erin"]["provider_info"] == {"owner": ["idm:admin@idm", "admin@idm"]}

        rejected = read_output(tmp_path / "rejected")
        assert len(rejected) == 4
        reasons = " ".join(r["error_reason"] for r in rejected)
        assert "unrecognised external ID 'ldap:dave'" in reasons
        assert "unrecognised owner for frank" in reasons
        assert "JSON decode error" in reasons

    def test_missing_collection_fails(self, tmp_path, canonical_schema_path):
        stats = run_migration(JsonlLegacyStore(tmp_path), tmp_path / "out", canonical_schema_path)
        assert stats["status"] == "failed"
        assert "identities" in stats["error"]
        assert stats["written_records"] == 0

    def test_cursor_error_keeps_written_records(self, make_store, tmp_path, canonical_schema_path):
        store = make_store(
            [{"username": "a"}, {"username": "b"}, {"username": "c"}],
            error=ConnectionError("store unreachable"),
        )
        stats = run_migration(store, tmp_path, canonical_schema_path)
        assert stats["status"] == "failed"
        assert "store unreachable" in stats["error"]
        assert stats["written_records"] == 3
        assert [r["username"] for r in read_output(tmp_path / "identities")] == ["a", "b", "c"]


class TestCLI:
    """Test the migrate_db command line."""

    @pytest.fixture
    def dump_dir(self, repo_root, tmp_path):
        dump = tmp_path / "dump"
        dump.mkdir()
        shutil.copy(repo_root / "tests" / "fixtures" / "identities.jsonl", dump / "identities.jsonl")
        return dump

    def test_migrate(self, repo_root, dump_dir, tmp_path):
        out = tmp_path / "out"
        r = subprocess.run([
            sys.executable, "-m", "migrate_db.main", str(dump_dir), "--output-dir", str(out)
        ], capture_output=True, text=True, cwd=repo_root)

        assert r.returncode == 0, f"Migration failed: {r.stdout}{r.stderr}"
        assert "cannot convert identity (skipping)" in r.stdout
        assert "=== Migration Summary ===" in r.stdout
        assert len(read_output(out / "identities")) == 4

    def test_missing_dump(self, repo_root, tmp_path):
        r = subprocess.run([
            sys.executable, "-m", "migrate_db.main", str(tmp_path / "missing")
        ], capture_output=True, text=True, cwd=repo_root)
        assert r.returncode == 1
        assert "Legacy dump directory does not exist" in r.stdout

    def test_missing_collection(self, repo_root, tmp_path):
        r = subprocess.run([
            sys.executable, "-m", "migrate_db.main", str(tmp_path), "--output-dir", str(tmp_path / "out")
        ], capture_output=True, text=True, cwd=repo_root)
        assert r.returncode == 1
        assert "cannot read legacy identities" in r.stdout


if __name__ == "__main__":
    pytest.main([__file__])
