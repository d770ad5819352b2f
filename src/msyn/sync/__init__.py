from .scanner import ScanResult, scan_directory
from .sync_service import SyncService
from .utils import SyncOptions, SyncReport
from .version_store import VersionStore
from .watch_service import WatchService

__all__ = [
    "ScanResult",
    "SyncOptions",
    "SyncReport",
    "SyncService",
    "VersionStore",
    "WatchService",
    "scan_directory",
]
