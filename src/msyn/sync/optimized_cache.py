"""Cache of optimized SVG files, mirrored on the source tree layout."""

import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError

from msyn.file_utils import (
    FileError,
    FileWriteError,
    compute_checksum,
    compute_content_checksum,
    write_file_atomic,
)
from msyn.svg.optimizer import SvgOptimizeError, optimize_svg, optimize_svg_data
from msyn.sync.scanner import is_svg, scan_directory

MANIFEST_NAME = ".cache-manifest.json"


class CacheEntry(BaseModel):
    """Checksums of the source a cached file was built from, and of the cached file."""

    source: str
    optimized: str


entries_adapter = TypeAdapter(Dict[str, CacheEntry])


@dataclass
class OptimizeReport:
    """Result of optimizing a whole source tree."""

    optimized: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class OptimizedAssetCache:
    """
    Optimized copies of source SVGs, keyed by relative path.

    A cached file is reused only while it was produced from the current source
    checksum and has not been modified since. The cache is fully regenerable:
    deleting the directory only costs re-optimization.
    """

    def __init__(self, root: Path):
        self.root = root
        self.manifest_path = root / MANIFEST_NAME
        self.entries: Dict[str, CacheEntry] = self._load_manifest()
        # paths re-optimized during this run, so force applies once per run
        self.refreshed: Set[str] = set()
        self.dirty = False

    def _load_manifest(self) -> Dict[str, CacheEntry]:
        if not self.manifest_path.exists():
            return {}
        try:
            raw = json.loads(self.manifest_path.read_text(encoding="utf-8"))
            return entries_adapter.validate_python(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load cache manifest: {self.manifest_path}: {e}")
            return {}

    def path_for(self, relative_path: str) -> Path:
        return self.root / relative_path

    def cached_checksum(self, relative_path: str, source_checksum: str) -> Optional[str]:
        """
        Checksum of the cached file if it is current for the given source checksum.

        Returns:
            None when the entry is missing, stale or was modified on disk
        """
        entry = self.entries.get(relative_path)
        if entry is None or entry.source != source_checksum:
            return None
        try:
            actual = compute_checksum(self.path_for(relative_path))
        except FileError:
            return None
        return actual if actual == entry.optimized else None

    def preview_checksum(
        self, relative_path: str, source_path: Path, source_checksum: str
    ) -> Optional[str]:
        """
        Checksum the optimized file has, or would have, without touching the cache.

        Returns:
            None when the source cannot be read or optimized
        """
        cached = self.cached_checksum(relative_path, source_checksum)
        if cached is not None:
            return cached
        try:
            optimized = optimize_svg_data(source_path.read_bytes())
        except (OSError, SvgOptimizeError) as e:
            logger.debug(f"Cannot preview optimized SVG: {relative_path}: {e}")
            return None
        return compute_content_checksum(optimized.encode("utf-8"))

    def ensure(
        self,
        relative_path: str,
        source_path: Path,
        source_checksum: str,
        force: bool = False,
        verbose: bool = False,
    ) -> Optional[Path]:
        """
        Make sure an optimized copy of the source exists and is current.

        Returns:
            Path of the optimized file, or None if optimization failed
        """
        cached_path = self.path_for(relative_path)
        refresh = force and relative_path not in self.refreshed
        if not refresh and self.cached_checksum(relative_path, source_checksum) is not None:
            logger.debug(f"Using cached optimized SVG: {relative_path}")
            return cached_path

        if not optimize_svg(source_path, cached_path, force=True, verbose=verbose):
            if self.entries.pop(relative_path, None) is not None:
                self.dirty = True
            return None

        try:
            optimized_checksum = compute_checksum(cached_path)
        except FileError as e:
            logger.error(f"File operation failed: {cached_path}: {e}")
            return None

        self.entries[relative_path] = CacheEntry(
            source=source_checksum, optimized=optimized_checksum
        )
        self.refreshed.add(relative_path)
        self.dirty = True
        return cached_path

    def save(self) -> None:
        """
        Persist the manifest if anything changed.

        Raises:
            FileWriteError: If the manifest cannot be written
        """
        if not self.dirty:
            return
        self.root.mkdir(parents=True, exist_ok=True)
        content = json.dumps(
            {path: entry.model_dump() for path, entry in sorted(self.entries.items())}, indent=2
        )
        write_file_atomic(self.manifest_path, content + "\n")
        self.dirty = False

    def clear(self) -> None:
        """Delete the whole cache directory."""
        self.entries = {}
        self.refreshed = set()
        self.dirty = False
        if self.root.exists():
            try:
                shutil.rmtree(self.root)
            except OSError as e:
                raise FileWriteError(f"Failed to delete {self.root}: {e}") from e

    def optimize_tree(
        self,
        source_root: Path,
        force: bool = False,
        verbose: bool = False,
        exclude: Iterable[Path] = (),
    ) -> OptimizeReport:
        """Optimize every SVG of a source tree into the cache."""
        report = OptimizeReport()
        scan = scan_directory(
            source_root, type_filter=is_svg, exclude=[self.root, *exclude]
        )
        report.failed.extend(sorted(scan.errors))

        for relative_path, checksum in scan.files.items():
            if not force and self.cached_checksum(relative_path, checksum) is not None:
                report.skipped.append(relative_path)
                message = f"Skipped: {relative_path} (up to date, use --force to overwrite)"
                logger.info(message) if verbose else logger.debug(message)
                continue
            result = self.ensure(
                relative_path, source_root / relative_path, checksum, force=force, verbose=verbose
            )
            if result is None:
                report.failed.append(relative_path)
            else:
                report.optimized.append(relative_path)

        return report
