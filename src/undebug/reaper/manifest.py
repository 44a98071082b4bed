"""Backup manifest management for restoring rewritten files."""
import json
from pathlib import Path
from datetime import datetime
from typing import List, Dict, Optional
import hashlib

MANIFEST_VERSION = "1.0"


class Manifest:
    """Manage the JSON manifest recording each backed-up original."""

    def __init__(self, backup_dir: str | Path):
        """Initialize manifest.

        Args:
            backup_dir: Path to backup directory
        """
        self.backup_dir = Path(backup_dir)
        self.manifest_path = self.backup_dir / "manifest.json"
        self._ensure_manifest_exists()

    def _ensure_manifest_exists(self):
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        if not self.manifest_path.exists():
            self._write_manifest({"version": MANIFEST_VERSION, "backups": []})

    def _read_manifest(self) -> Dict:
        try:
            with open(self.manifest_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (IOError, json.JSONDecodeError):
            return {"version": MANIFEST_VERSION, "backups": []}

    def _write_manifest(self, data: Dict):
        """Write manifest to disk atomically.

        Args:
            data: Manifest dictionary to write
        """
        temp_path = self.manifest_path.with_suffix('.tmp')
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        temp_path.replace(self.manifest_path)

    def add_backup(self, backup_id: str, original_path: str, backup_path: str,
                   reason: str, file_hash: str):
        """Add a backup record to the manifest.

        Args:
            backup_id: Unique backup identifier
            original_path: File that is about to be rewritten
            backup_path: Where the untouched copy was stored
            reason: Why the file was rewritten (e.g., 'strip')
            file_hash: SHA256 of the original content
        """
        manifest = self._read_manifest()

        manifest.setdefault("backups", []).append({
            "id": backup_id,
            "original_path": str(original_path),
            "backup_path": str(backup_path),
            "created_at": datetime.now().isoformat(),
            "reason": reason,
            "file_hash": file_hash,
            "restored": False
        })
        self._write_manifest(manifest)

    def get_backup(self, backup_id: str) -> Optional[Dict]:
        for record in self.get_all_backups():
            if record["id"] == backup_id:
                return record
        return None

    def mark_restored(self, backup_id: str):
        manifest = self._read_manifest()

        for record in manifest.get("backups", []):
            if record["id"] == backup_id:
                record["restored"] = True
                break

        self._write_manifest(manifest)

    def get_all_backups(self) -> List[Dict]:
        return self._read_manifest().get("backups", [])

    def get_pending_backups(self) -> List[Dict]:
        """Backups whose originals have not been restored yet."""
        return [r for r in self.get_all_backups() if not r.get("restored", False)]

    @staticmethod
    def calculate_file_hash(file_path: str | Path) -> str:
        """Calculate SHA256 hash of file.

        Args:
            file_path: Path to file

        Returns:
            SHA256 hash as hex string
        """
        sha256_hash = hashlib.sha256()

        with open(file_path, "rb") as f:
            for byte_block in iter(lambda: f.read(4096), b""):
                sha256_hash.update(byte_block)

        return sha256_hash.hexdigest()
