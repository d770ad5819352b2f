"""Watch service for msyn: re-sync targets when their source trees change."""

import asyncio
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from loguru import logger
from pydantic import BaseModel, Field
from rich.console import Console
from watchfiles import Change, DefaultFilter, awatch

from msyn.sync.optimized_cache import MANIFEST_NAME
from msyn.sync.sync_service import SyncService
from msyn.sync.utils import SyncOptions, SyncReport

console = Console()

# watchfiles groups raw events for this long before yielding them
RAW_DEBOUNCE_MS = 50
RESTART_DELAY = 1.0

SyncCallable = Callable[[SyncOptions], Dict[str, SyncReport]]


class WatchError(Exception):
    """Raised when the watcher cannot be started."""

    pass


class WatchState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    DEBOUNCING = "debouncing"
    TRIGGERED = "triggered"
    STOPPED = "stopped"


class WatchEvent(BaseModel):
    timestamp: datetime
    path: str
    action: str  # added, modified, deleted, sync
    status: str  # success, error
    checksum: Optional[str] = None
    error: Optional[str] = None


class WatchServiceState(BaseModel):
    # Service status
    phase: WatchState = WatchState.IDLE
    running: bool = False
    start_time: datetime = Field(default_factory=datetime.now)
    pid: int = Field(default_factory=os.getpid)

    # Stats
    sync_count: int = 0
    error_count: int = 0
    last_error: Optional[datetime] = None
    last_sync: Optional[datetime] = None

    # Recent activity
    recent_events: List[WatchEvent] = Field(default_factory=list)

    def add_event(
        self,
        path: str,
        action: str,
        status: str,
        checksum: Optional[str] = None,
        error: Optional[str] = None,
    ) -> WatchEvent:
        event = WatchEvent(
            timestamp=datetime.now(),
            path=path,
            action=action,
            status=status,
            checksum=checksum,
            error=error,
        )
        self.recent_events.insert(0, event)
        self.recent_events = self.recent_events[:100]  # Keep last 100
        return event

    def record_error(self, error: str):
        self.error_count += 1
        self.add_event(path="", action="sync", status="error", error=error)
        self.last_error = datetime.now()


class AssetChangeFilter(DefaultFilter):
    """Default watchfiles filter that also ignores optimized caches and temp files."""

    ignored_names = (MANIFEST_NAME,)

    def __init__(self, ignore_paths: Iterable[Path] = ()):
        super().__init__(ignore_paths=[str(p) for p in ignore_paths])

    def __call__(self, change: Change, path: str) -> bool:
        name = os.path.basename(path)
        if name in self.ignored_names or (name.startswith(".") and name.endswith(".tmp")):
            return False
        return super().__call__(change, path)


class WatchService:
    """
    Debounced watch loop around SyncService.sync_all.

    Raw filesystem events (re)start a timer of ``delay_ms``; when it expires
    a single sync is requested. One runner task performs the syncs, so a
    request arriving while a sync is in flight runs after it, never beside it.
    """

    def __init__(
        self,
        sync_service: SyncService,
        options: SyncOptions,
        watch_paths: List[Path],
        delay_ms: int,
        ignore_paths: Iterable[Path] = (),
        sync: Optional[SyncCallable] = None,
        console: Console = console,
    ):
        self.sync_service = sync_service
        self.options = options
        self.watch_paths = watch_paths
        self.delay = delay_ms / 1000
        self.ignore_paths = list(ignore_paths)
        self.sync = sync or sync_service.sync_all
        self.console = console
        self.state = WatchServiceState()
        self.filter = AssetChangeFilter(self.ignore_paths)

        self.stop_event = asyncio.Event()
        self._trigger = asyncio.Event()
        self._timer: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls, sync_service: SyncService, options: SyncOptions, **kwargs
    ) -> "WatchService":
        """
        Watch the source trees of the selected targets, with the configured delay.

        Raises:
            ConfigError: If the project root cannot be resolved
            WatchError: If no enabled target is selected
        """
        project_root = sync_service.settings.resolve_project_root()
        config = sync_service.config_manager.load_config()
        selected = {t.target_id for t in config.select_targets(options.targets)}
        sources = [
            t.source for t in config.resolve_targets(project_root) if t.target_id in selected
        ]
        if not sources:
            raise WatchError("No enabled targets to watch")
        return cls(
            sync_service,
            options,
            watch_paths=list(dict.fromkeys(sources)),
            delay_ms=config.watch_delay,
            ignore_paths=config.optimized_roots(project_root),
            **kwargs,
        )

    async def run(self, stop_event: Optional[asyncio.Event] = None):
        """Sync once, then watch for changes until the stop event is set."""
        if stop_event is not None:
            self.stop_event = stop_event

        self.state.running = True
        self.state.start_time = datetime.now()
        runner = asyncio.create_task(self._sync_runner())

        # initial sync
        self._trigger.set()
        try:
            await self._watch()
        finally:
            self.stop()
            # lets an in-flight sync finish, no new one is started
            self._trigger.set()
            await runner
            self.state.running = False
            self.state.phase = WatchState.STOPPED
            logger.info("Watch stopped")

    def stop(self):
        """Stop scheduling syncs and end the watch loop."""
        self.stop_event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _watch(self):
        while not self.stop_event.is_set():
            paths = [p for p in self.watch_paths if p.is_dir()]
            if not paths:
                logger.warning("No source directory exists yet, waiting...")
                await self._wait_for_stop(RESTART_DELAY)
                continue

            self._set_idle_phase()
            self.console.print("\n[cyan]Watching for changes...[/cyan]")
            for path in paths:
                logger.info(f"Watching {path}")

            try:
                async for changes in awatch(
                    *paths,
                    watch_filter=self.filter,
                    debounce=RAW_DEBOUNCE_MS,
                    stop_event=self.stop_event,
                    recursive=True,
                    ignore_permission_denied=True,
                ):
                    self.handle_changes(changes)
            except Exception as e:
                logger.error(f"Watch error: {e}")
                self.state.record_error(str(e))
                await self._wait_for_stop(RESTART_DELAY)
            else:
                if not self.stop_event.is_set():
                    # a watched directory went away
                    await self._wait_for_stop(RESTART_DELAY)

    async def _wait_for_stop(self, timeout: float):
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout)
        except asyncio.TimeoutError:
            pass

    def handle_changes(self, changes: Set[Tuple[Change, str]]):
        """Record a batch of raw events and restart the debounce timer."""
        if self.stop_event.is_set():
            return

        for change, path in sorted(changes, key=lambda c: c[1]):
            logger.debug(f"{change.name}: {path}")
            self.state.add_event(path=path, action=change.name, status="pending")

        if self._timer is not None:
            self._timer.cancel()
        self.state.phase = WatchState.DEBOUNCING
        self._timer = asyncio.create_task(self._debounce())

    async def _debounce(self):
        await asyncio.sleep(self.delay)
        self._timer = None
        self.state.phase = WatchState.TRIGGERED
        self._trigger.set()

    async def _sync_runner(self):
        while True:
            await self._trigger.wait()
            self._trigger.clear()
            # the initial sync is also skipped when stopped before it began
            if self.stop_event.is_set():
                return
            await self.run_sync()

    async def run_sync(self):
        """Run one sync in a worker thread and record its outcome."""
        logger.info("Syncing assets...")
        try:
            reports = await asyncio.to_thread(self.sync, self.options)
        except Exception as e:
            logger.error(f"Sync failed: {e}")
            self.state.record_error(str(e))
            return
        finally:
            self._set_idle_phase()

        self.state.sync_count += 1
        self.state.last_sync = datetime.now()
        self.show_reports(reports)

    def _set_idle_phase(self):
        if self.stop_event.is_set():
            return
        if self._timer is not None:
            self.state.phase = WatchState.DEBOUNCING
        elif self._trigger.is_set():
            self.state.phase = WatchState.TRIGGERED
        else:
            self.state.phase = WatchState.WATCHING

    def show_reports(self, reports: Dict[str, SyncReport]):
        for target_id, report in reports.items():
            for path, error in report.errors.items():
                self.state.add_event(path=path, action="sync", status="error", error=error)
            if not report.total_changes:
                continue

            timestamp = datetime.now().isoformat(timespec="minutes")
            for path in sorted(report.added):
                self.state.add_event(
                    path=path, action="added", status="success", checksum=report.checksums.get(path)
                )
                self.console.print(f"{timestamp} {target_id} Added:\t [green]{path}[/green]")
            for path in sorted(report.updated):
                self.state.add_event(
                    path=path,
                    action="modified",
                    status="success",
                    checksum=report.checksums.get(path),
                )
                self.console.print(f"{timestamp} {target_id} Updated:\t [yellow]{path}[/yellow]")
            for path in sorted(report.deleted):
                self.state.add_event(path=path, action="deleted", status="success")
                self.console.print(f"{timestamp} {target_id} Deleted:\t [red]{path}[/red]")
