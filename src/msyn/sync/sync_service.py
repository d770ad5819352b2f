"""Service for syncing asset trees into framework destinations."""

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from loguru import logger

from msyn.config import ConfigManager, MsynConfig, MsynSettings, Target
from msyn.file_utils import FileError, copy_file, delete_file, ensure_directory
from msyn.sync.optimized_cache import OptimizedAssetCache, OptimizeReport
from msyn.sync.scanner import format_filter, is_svg, scan_directory
from msyn.sync.utils import SyncOptions, SyncReport
from msyn.sync.version_store import VersionStore


class SyncService:
    """Differential sync of every configured target, backed by the version manifest."""

    def __init__(
        self,
        settings: Optional[MsynSettings] = None,
        config_manager: Optional[ConfigManager] = None,
    ):
        self.settings = settings or MsynSettings()
        self.config_manager = config_manager or ConfigManager(self.settings)

    def _announce(self, options: SyncOptions, message: str) -> None:
        if options.dry_run:
            logger.info(f"[DRY RUN] {message}")
        elif options.verbose:
            logger.info(message)
        else:
            logger.debug(message)

    def sync_target(
        self,
        target: Target,
        store: VersionStore,
        cache: Optional[OptimizedAssetCache],
        options: SyncOptions,
        exclude: Iterable[Path] = (),
    ) -> SyncReport:
        """
        Bring one destination tree in line with its source tree.

        Files are compared by checksum. A copied file counts as added when the
        version manifest did not know it for this target, otherwise as updated.
        Per file errors are logged and recorded in the report; the remaining
        files are still synced.

        Args:
            target: Resolved target
            store: Version manifest, updated in place unless dry run
            cache: Optimized SVG cache of the target's source, None disables optimization
            options: Switches of this invocation
            exclude: Directories never scanned, such as optimized caches

        Returns:
            SyncReport of the decisions taken (or that would be taken under dry run)
        """
        report = SyncReport(target_id=target.target_id)
        exclude = list(exclude)
        optimize = options.optimize and cache is not None

        if not target.source.is_dir():
            logger.warning(
                f"Source directory not found: {target.source}, skipping {target.target_id}"
            )
            return report

        if not target.destination.exists():
            if options.dry_run:
                logger.info(f"[DRY RUN] Will create directory: {target.destination}")
            else:
                try:
                    ensure_directory(target.destination)
                except FileError as e:
                    report.errors["."] = str(e)
                    return report
                logger.info(f"Created directory: {target.destination}")

        type_filter = format_filter(target.formats)
        source = scan_directory(target.source, type_filter=type_filter, exclude=exclude)
        destination = scan_directory(target.destination, type_filter=type_filter, exclude=exclude)
        previous = store.for_target(target.target_id)
        report.errors.update(source.errors)

        for path, checksum in source.files.items():
            report.checksums[path] = checksum
            optimize_file = optimize and is_svg(path)

            expected = checksum
            optimized_path = None
            if optimize_file:
                # the destination holds the optimized copy, not the source bytes
                if options.dry_run:
                    preview = cache.preview_checksum(path, target.source / path, checksum)
                    expected = preview or checksum
                else:
                    optimized_path = cache.ensure(
                        path,
                        target.source / path,
                        checksum,
                        force=options.force,
                        verbose=options.verbose,
                    )
                    if optimized_path is None:
                        # never fall back to the unoptimized file
                        report.errors[path] = "SVG optimization failed"
                        continue
                    expected = cache.entries[path].optimized

            if not options.force and destination.files.get(path) == expected:
                if not options.dry_run:
                    store.record(target.target_id, path, checksum)
                continue

            is_update = path in previous
            verb, done = ("update", "Updated") if is_update else ("add", "Added")

            if options.dry_run:
                self._announce(options, f"Will {verb} file: {path}")
                if optimize_file:
                    self._announce(options, f"Will optimize SVG: {path}")
                    report.optimized.add(path)
                (report.updated if is_update else report.added).add(path)
                continue

            try:
                if optimized_path is not None:
                    copy_file(optimized_path, target.destination / path)
                    report.optimized.add(path)
                else:
                    copy_file(target.source / path, target.destination / path)
            except FileError as e:
                logger.error(f"File operation failed: {path}: {e}")
                report.errors[path] = str(e)
                continue

            (report.updated if is_update else report.added).add(path)
            store.record(target.target_id, path, checksum)
            self._announce(options, f"{done} file: {path}")

        # snapshots were taken before any copy, so deletions see the same state
        for path in destination.files:
            if path in source.files:
                continue
            if source.is_uncertain(path):
                logger.debug(f"Keeping {path}: source could not be read")
                continue

            if options.dry_run:
                self._announce(options, f"Will delete file: {path}")
                report.deleted.add(path)
                continue

            try:
                delete_file(target.destination / path)
            except FileError as e:
                logger.error(f"File operation failed: {path}: {e}")
                report.errors[path] = str(e)
                continue

            report.deleted.add(path)
            store.forget(target.target_id, path)
            self._announce(options, f"Deleted file: {path}")

        if not options.dry_run:
            for path in previous:
                if path not in source.files and not source.is_uncertain(path):
                    store.forget(target.target_id, path)

        summary = (
            f"Sync results for {target.target_id}: Added={len(report.added)}, "
            f"Updated={len(report.updated)}, Deleted={len(report.deleted)}"
        )
        if optimize:
            summary += f", SVG Optimized={len(report.optimized)}"
        logger.info(summary)
        if report.errors:
            logger.warning(f"{len(report.errors)} files could not be synced for {target.target_id}")

        return report

    def _selected_targets(
        self, config: MsynConfig, project_root: Path, options: SyncOptions
    ) -> List[Target]:
        selected = {t.target_id for t in config.select_targets(options.targets)}
        return [t for t in config.resolve_targets(project_root) if t.target_id in selected]

    def sync_all(self, options: Optional[SyncOptions] = None) -> Dict[str, SyncReport]:
        """
        Sync every enabled target, one after the other.

        The version manifest and optimized caches are saved once at the end,
        and never under dry run.

        Raises:
            ConfigError: If the project root cannot be resolved
        """
        options = options or SyncOptions()
        project_root = self.settings.resolve_project_root()
        config = self.config_manager.load_config()
        optimize = options.optimize and config.optimize

        targets = self._selected_targets(config, project_root, options)
        if not targets:
            if options.targets:
                logger.warning(f"No enabled targets match: {', '.join(sorted(options.targets))}")
            else:
                logger.warning("No enabled targets to sync")
            return {}

        store = VersionStore.load(project_root / self.settings.version_file)
        exclude = config.optimized_roots(project_root)
        caches: Dict[Path, OptimizedAssetCache] = {}
        reports: Dict[str, SyncReport] = {}

        logger.info(f"Syncing {len(targets)} targets")
        for target in targets:
            cache = None
            if optimize and target.optimized is not None:
                if target.optimized not in caches:
                    caches[target.optimized] = OptimizedAssetCache(target.optimized)
                cache = caches[target.optimized]
            logger.info(f"Syncing {target.source} -> {target.destination} ({target.target_id})")
            reports[target.target_id] = self.sync_target(target, store, cache, options, exclude)

        if options.dry_run:
            return reports

        for cache in caches.values():
            try:
                cache.save()
            except FileError as e:
                logger.error(f"Failed to save cache manifest: {cache.manifest_path}: {e}")
        try:
            store.save()
        except FileError as e:
            logger.error(f"Failed to save version manifest: {store.path}: {e}")

        return reports

    def optimize_all(self, force: bool = False, verbose: bool = False) -> Dict[str, OptimizeReport]:
        """
        Optimize the SVGs of every source tree that has an optimized directory.

        Returns:
            Reports keyed by the optimized directory, relative to the project root

        Raises:
            ConfigError: If the project root cannot be resolved
        """
        project_root = self.settings.resolve_project_root()
        config = self.config_manager.load_config()
        exclude = config.optimized_roots(project_root)

        pairs = [(a.source, a.optimized) for a in config.assets.values() if a.optimized]
        if config.source_dir and config.optimized_dir:
            pairs.append((config.source_dir, config.optimized_dir))

        reports: Dict[str, OptimizeReport] = {}
        for source, optimized in dict.fromkeys(pairs):
            source_root = project_root / source
            if not source_root.is_dir():
                logger.warning(f"Source directory not found: {source_root}")
                continue
            cache = OptimizedAssetCache(project_root / optimized)
            logger.info(f"Optimizing SVG files: {source_root} -> {cache.root}")
            report = cache.optimize_tree(source_root, force=force, verbose=verbose, exclude=exclude)
            try:
                cache.save()
            except FileError as e:
                logger.error(f"Failed to save cache manifest: {cache.manifest_path}: {e}")
            reports[optimized] = report

        if not reports:
            logger.warning("No asset directories with optimization configured")
        return reports

    def reset(self, clear_cache: bool = False) -> List[Path]:
        """
        Delete the version manifest, and optionally every optimized cache.

        Returns:
            Paths that were removed

        Raises:
            ConfigError: If the project root cannot be resolved
            FileWriteError: If a file cannot be removed
        """
        project_root = self.settings.resolve_project_root()
        removed = []

        store = VersionStore(project_root / self.settings.version_file)
        if store.path.exists():
            removed.append(store.path)
        store.reset()

        if clear_cache:
            config = self.config_manager.load_config()
            for root in config.optimized_roots(project_root):
                if root.exists():
                    OptimizedAssetCache(root).clear()
                    removed.append(root)

        for path in removed:
            logger.info(f"Removed {path}")
        return removed
