"""Keep untouched copies of files before they are rewritten in place."""
import logging
import shutil
import secrets
from pathlib import Path
from datetime import datetime
from typing import List, Optional
from .manifest import Manifest

logger = logging.getLogger(__name__)


class BackupStore:
    """Copies originals aside before a rewrite and restores them on demand."""

    def __init__(self, backup_dir: str | Path = ".undebug_backup"):
        """Initialize backup store.

        Args:
            backup_dir: Path to backup directory (default: .undebug_backup)
        """
        self.backup_dir = Path(backup_dir)
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        self.manifest = Manifest(self.backup_dir)

    def backup(self, file_path: str | Path, reason: str = "strip") -> str:
        """Copy file into the store and record it in the manifest.

        The original stays in place; the caller overwrites it afterwards.

        Args:
            file_path: Path to the file about to be rewritten
            reason: Reason for the rewrite

        Returns:
            Backup ID for restoration

        Raises:
            FileNotFoundError: If file doesn't exist
            IOError: If the copy fails
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        backup_id = self._generate_backup_id()
        backup_dir = self.backup_dir / backup_id
        backup_dir.mkdir(parents=True, exist_ok=True)

        file_hash = self.manifest.calculate_file_hash(file_path)
        backup_path = backup_dir / file_path.name
        shutil.copy2(str(file_path), str(backup_path))

        self.manifest.add_backup(
            backup_id=backup_id,
            original_path=str(file_path.resolve()),
            backup_path=str(backup_path),
            reason=reason,
            file_hash=file_hash
        )
        logger.debug("backed up %s as %s", file_path, backup_id)

        return backup_id

    def restore(self, backup_id: str):
        """Copy a backup over its original location.

        Args:
            backup_id: Backup identifier

        Raises:
            ValueError: If backup ID not found
            IOError: If the backup file is missing or does not match its recorded hash
        """
        record = self.manifest.get_backup(backup_id)

        if not record:
            raise ValueError(f"Backup ID not found: {backup_id}")

        # Restoring twice is a no-op
        if record.get("restored", False):
            return

        backup_path = Path(record["backup_path"])
        original_path = Path(record["original_path"])

        if not backup_path.exists():
            raise IOError(f"File not found in backups: {backup_path}")

        if self.manifest.calculate_file_hash(backup_path) != record["file_hash"]:
            raise IOError(f"Backup was modified since it was taken: {backup_path}")

        original_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(str(backup_path), str(original_path))

        self.manifest.mark_restored(backup_id)

    def restore_all(self, backup_ids: List[Optional[str]]):
        """Restore several backups, attempting every one before failing.

        Args:
            backup_ids: Backup identifiers (None entries are skipped)

        Raises:
            IOError: If any restoration fails
        """
        errors = []

        for backup_id in backup_ids:
            if backup_id is None:
                continue

            try:
                self.restore(backup_id)
            except (ValueError, IOError) as e:
                errors.append(f"{backup_id}: {e}")

        if errors:
            raise IOError("Failed to restore some files:\n" + "\n".join(errors))

    def get_backup_info(self) -> dict:
        """Get information about the store's contents.

        Returns:
            Dictionary with backup statistics
        """
        all_backups = self.manifest.get_all_backups()
        pending = self.manifest.get_pending_backups()

        return {
            "total_backups": len(all_backups),
            "pending_count": len(pending),
            "restored_count": len(all_backups) - len(pending),
            "backup_dir": str(self.backup_dir),
            "pending_files": [r["original_path"] for r in pending]
        }

    def _generate_backup_id(self) -> str:
        """Generate unique backup ID with timestamp.

        Returns:
            Backup ID in format: YYYYMMDD_HHMMSS_randomhex
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        random_suffix = secrets.token_hex(3)
        return f"{timestamp}_{random_suffix}"
