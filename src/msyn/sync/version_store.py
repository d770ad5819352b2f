"""Persisted record of what was last synced to each target."""

import json
from pathlib import Path
from typing import Dict, Optional

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from msyn.file_utils import FileWriteError, write_file_atomic

# target id -> relative path -> checksum
Versions = Dict[str, Dict[str, str]]

versions_adapter = TypeAdapter(Versions)


class VersionStore:
    """
    The asset version manifest, shaped ``{target_id: {relative_path: checksum}}``.

    A path known to the store for a target was synced before, so copying it
    again counts as an update rather than an addition.
    """

    def __init__(self, path: Path, versions: Optional[Versions] = None):
        self.path = path
        self.versions: Versions = versions if versions is not None else {}

    @classmethod
    def load(cls, path: Path) -> "VersionStore":
        """Load the manifest; a missing or unreadable file yields an empty store."""
        if not path.exists():
            logger.debug(f"No version manifest at {path}, starting empty")
            return cls(path)

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            versions = versions_adapter.validate_python(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load version manifest: {path}: {e}")
            return cls(path)

        return cls(path, versions)

    def save(self) -> None:
        """
        Write the manifest using write-then-rename.

        Raises:
            FileWriteError: If the manifest cannot be written
        """
        content = json.dumps(self.versions, indent=2, sort_keys=True)
        write_file_atomic(self.path, content + "\n")
        logger.debug(f"Saved version manifest: {self.path}")

    def reset(self) -> None:
        """Forget every target and delete the manifest file."""
        self.versions = {}
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise FileWriteError(f"Failed to delete {self.path}: {e}") from e

    def for_target(self, target_id: str) -> Dict[str, str]:
        """Snapshot of the last synced checksums of a target."""
        return dict(self.versions.get(target_id, {}))

    def record(self, target_id: str, path: str, checksum: str) -> None:
        self.versions.setdefault(target_id, {})[path] = checksum

    def forget(self, target_id: str, path: str) -> None:
        entries = self.versions.get(target_id)
        if entries is not None:
            entries.pop(path, None)
