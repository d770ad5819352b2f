"""Types and utilities for asset sync."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Set


@dataclass(frozen=True)
class SyncOptions:
    """Per-invocation switches, never persisted."""

    dry_run: bool = False
    verbose: bool = False
    force: bool = False
    optimize: bool = True
    # None selects every enabled target
    targets: Optional[FrozenSet[str]] = None


@dataclass
class SyncReport:
    """Result of syncing one target.

    Attributes:
        target_id: Target the report belongs to
        added: Files copied that the version manifest did not know about
        updated: Files copied over a previously synced version
        deleted: Files removed from the destination
        optimized: SVG files that went through the optimizer on their way
        errors: Files skipped this run, mapped to the error message
        checksums: Source checksums of the files considered
    """

    target_id: str = ""
    added: Set[str] = field(default_factory=set)
    updated: Set[str] = field(default_factory=set)
    deleted: Set[str] = field(default_factory=set)
    optimized: Set[str] = field(default_factory=set)
    errors: Dict[str, str] = field(default_factory=dict)
    checksums: Dict[str, str] = field(default_factory=dict)

    @property
    def total_changes(self) -> int:
        """Total number of files that were changed in the destination."""
        return len(self.added) + len(self.updated) + len(self.deleted)

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "added": len(self.added),
            "updated": len(self.updated),
            "deleted": len(self.deleted),
            "optimized": len(self.optimized),
        }
