"""Test sync service."""

import json
import shutil
from pathlib import Path
from typing import Dict

import pytest

from msyn.config import ConfigError, MsynSettings
from msyn.file_utils import FileError, FileWriteError, compute_checksum
from msyn.svg import optimize_svg_data
from msyn.sync import SyncOptions, SyncService


def tree_files(root: Path) -> Dict[str, bytes]:
    """Every file below root with its content."""
    if not root.exists():
        return {}
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def source(project_root) -> Path:
    return project_root / "assets"


@pytest.fixture
def destination(project_root) -> Path:
    return project_root / "public" / "assets"


def test_sync_empty_target(sync_service, simple_config, source, destination, write_files):
    """Files of a new target are all added."""
    write_files(source, {"a.png": "a", "b.png": "b"})

    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.counts == {"added": 2, "updated": 0, "deleted": 0, "optimized": 0}
    assert tree_files(destination) == {"a.png": b"a", "b.png": b"b"}


def test_sync_is_idempotent(
    sync_service, simple_config, source, destination, write_files, simple_svg
):
    write_files(source, {"a.png": "a", "icons/logo.svg": simple_svg, "fonts/x.woff2": "font"})

    first = sync_service.sync_all(SyncOptions())["web"]
    second = sync_service.sync_all(SyncOptions())["web"]

    assert first.counts == {"added": 3, "updated": 0, "deleted": 0, "optimized": 1}
    assert second.total_changes == 0
    assert not second.optimized
    assert not second.errors


def test_sync_differential_update(sync_service, simple_config, source, destination, write_files):
    write_files(source, {"a.png": "a", "b.png": "b"})
    sync_service.sync_all(SyncOptions())

    (source / "a.png").write_text("a changed")
    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.added == set()
    assert report.updated == {"a.png"}
    assert report.deleted == set()
    assert (destination / "a.png").read_text() == "a changed"


def test_sync_deletion_propagates(
    sync_service, settings, simple_config, source, destination, write_files
):
    write_files(source, {"a.png": "a", "old/b.png": "b"})
    sync_service.sync_all(SyncOptions())

    (source / "old" / "b.png").unlink()
    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.counts["deleted"] == 1
    assert report.deleted == {"old/b.png"}
    assert not (destination / "old" / "b.png").exists()
    versions = json.loads(settings.version_path.read_text())
    assert versions == {"web": {"a.png": compute_checksum(source / "a.png")}}


def test_rename_is_add_and_delete(sync_service, simple_config, source, destination, write_files):
    write_files(source, {"a.png": "same"})
    sync_service.sync_all(SyncOptions())

    (source / "a.png").rename(source / "renamed.png")
    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.added == {"renamed.png"}
    assert report.deleted == {"a.png"}


def test_version_store_matches_source(
    sync_service, settings, simple_config, source, destination, write_files
):
    write_files(source, {"a.png": "a"})
    # already identical in the destination before the first sync
    write_files(destination, {"a.png": "a"})

    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.total_changes == 0
    versions = json.loads(settings.version_path.read_text())
    assert versions == {"web": {"a.png": compute_checksum(source / "a.png")}}


def test_existing_destination_file_unknown_to_store_is_added(
    sync_service, simple_config, source, destination, write_files
):
    write_files(source, {"a.png": "new"})
    write_files(destination, {"a.png": "old"})

    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.added == {"a.png"}
    assert (destination / "a.png").read_text() == "new"


@pytest.mark.parametrize("force", [False, True])
@pytest.mark.parametrize("optimize", [False, True])
def test_dry_run_does_not_mutate(
    sync_service, project_root, simple_config, source, write_files, simple_svg, force, optimize
):
    write_files(source, {"a.png": "a", "b.png": "b", "logo.svg": simple_svg})
    sync_service.sync_all(SyncOptions(optimize=optimize))
    # pending changes: one update, one delete, one add, one changed svg
    changed_svg = simple_svg.replace("#000", "#fff")
    write_files(source, {"a.png": "a2", "c.png": "c", "logo.svg": changed_svg})
    (source / "b.png").unlink()
    before = tree_files(project_root)

    dry = sync_service.sync_all(SyncOptions(dry_run=True, force=force, optimize=optimize))["web"]

    assert tree_files(project_root) == before
    real = sync_service.sync_all(SyncOptions(force=force, optimize=optimize))["web"]
    assert dry.counts == real.counts
    assert (dry.added, dry.updated, dry.deleted) == (real.added, real.updated, real.deleted)


def test_dry_run_first_run_creates_nothing(
    sync_service, project_root, simple_config, source, destination, write_files, simple_svg
):
    write_files(source, {"a.png": "a", "logo.svg": simple_svg})
    before = tree_files(project_root)

    report = sync_service.sync_all(SyncOptions(dry_run=True))["web"]

    assert report.counts == {"added": 2, "updated": 0, "deleted": 0, "optimized": 1}
    assert tree_files(project_root) == before
    assert not destination.exists()


def test_partial_failure_is_isolated(
    sync_service, settings, simple_config, source, destination, write_files, monkeypatch
):
    write_files(source, {f"f{i}.png": f"content {i}" for i in range(10)})

    from msyn.sync import sync_service as sync_module

    real_copy = sync_module.copy_file

    def flaky_copy(src: Path, dst: Path):
        if src.name == "f3.png":
            raise FileWriteError("Permission denied")
        real_copy(src, dst)

    monkeypatch.setattr(sync_module, "copy_file", flaky_copy)
    report = sync_service.sync_all(SyncOptions())["web"]

    assert len(report.added) == 9
    assert "f3.png" not in report.added
    assert report.errors == {"f3.png": "Permission denied"}
    assert sorted(tree_files(destination)) == sorted(f"f{i}.png" for i in range(10) if i != 3)
    assert "f3.png" not in json.loads(settings.version_path.read_text())["web"]

    # the next run picks the file up again
    monkeypatch.setattr(sync_module, "copy_file", real_copy)
    report = sync_service.sync_all(SyncOptions())["web"]
    assert report.added == {"f3.png"}
    assert report.updated == set()


def test_format_filter(sync_service, write_config, source, destination, write_files):
    write_config(
        {
            "sourceDir": "assets",
            "targets": [{"name": "web", "destination": "public/assets", "formats": ["webp"]}],
        }
    )
    write_files(source, {"a.webp": "a", "b.png": "b", "nested/c.WEBP": "c"})
    write_files(destination, {"owned-elsewhere.png": "keep"})

    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.added == {"a.webp", "nested/c.WEBP"}
    assert report.deleted == set()
    assert set(report.checksums) == {"a.webp", "nested/c.WEBP"}
    assert sorted(tree_files(destination)) == ["a.webp", "nested/c.WEBP", "owned-elsewhere.png"]


def test_svg_is_optimized_into_cache(
    sync_service, project_root, simple_config, source, destination, write_files, simple_svg
):
    write_files(source, {"icons/logo.svg": simple_svg})

    report = sync_service.sync_all(SyncOptions())["web"]

    expected = optimize_svg_data(simple_svg)
    assert report.optimized == {"icons/logo.svg"}
    assert (destination / "icons/logo.svg").read_text() == expected
    assert (source / ".optimized/icons/logo.svg").read_text() == expected
    # the cache inside the source tree is never synced itself
    assert sorted(tree_files(destination)) == ["icons/logo.svg"]


def test_changed_svg_is_optimized_again(
    sync_service, simple_config, source, destination, write_files, simple_svg
):
    write_files(source, {"logo.svg": simple_svg})
    sync_service.sync_all(SyncOptions())

    changed = simple_svg.replace('fill="#000"', 'fill="#f00"')
    (source / "logo.svg").write_text(changed)
    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.updated == {"logo.svg"}
    assert report.optimized == {"logo.svg"}
    assert (destination / "logo.svg").read_text() == optimize_svg_data(changed)


def test_deleted_cache_reports_no_changes(
    sync_service, simple_config, source, destination, write_files, simple_svg
):
    write_files(source, {"logo.svg": simple_svg})
    sync_service.sync_all(SyncOptions())
    synced = (destination / "logo.svg").read_bytes()

    shutil.rmtree(source / ".optimized")
    dry = sync_service.sync_all(SyncOptions(dry_run=True))["web"]
    real = sync_service.sync_all(SyncOptions())["web"]

    assert dry.total_changes == 0
    assert dry.optimized == set()
    assert real.total_changes == 0
    assert real.optimized == set()
    assert (destination / "logo.svg").read_bytes() == synced
    # the cache is rebuilt on the way
    assert (source / ".optimized/logo.svg").read_text() == optimize_svg_data(simple_svg)


def test_no_optimize_copies_svg_verbatim(
    sync_service, simple_config, source, destination, write_files, simple_svg
):
    write_files(source, {"logo.svg": simple_svg})

    report = sync_service.sync_all(SyncOptions(optimize=False))["web"]

    assert report.optimized == set()
    assert (destination / "logo.svg").read_text() == simple_svg
    assert not (source / ".optimized").exists()


def test_invalid_svg_is_not_copied(
    sync_service, simple_config, source, destination, write_files, log_messages
):
    write_files(source, {"broken.svg": "<svg><g></svg>", "a.png": "a"})

    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.added == {"a.png"}
    assert "broken.svg" in report.errors
    assert not (destination / "broken.svg").exists()
    assert any(m.startswith("Optimization error:") and "broken.svg" in m for m in log_messages)


def test_force_copies_everything(
    sync_service, simple_config, source, destination, write_files, simple_svg
):
    write_files(source, {"a.png": "a", "logo.svg": simple_svg})
    sync_service.sync_all(SyncOptions())

    report = sync_service.sync_all(SyncOptions(force=True))["web"]

    assert report.updated == {"a.png", "logo.svg"}
    assert report.optimized == {"logo.svg"}


def test_shared_cache_optimizes_once(
    sync_service, write_config, source, write_files, simple_svg, monkeypatch
):
    write_config(
        {
            "sourceDir": "assets",
            "optimizedDir": "assets/.optimized",
            "targets": [
                {"name": "web", "destination": "web/public"},
                {"name": "mobile", "destination": "mobile/assets"},
            ],
        }
    )
    write_files(source, {"logo.svg": simple_svg})

    from msyn.sync import optimized_cache

    calls = []
    real_optimize = optimized_cache.optimize_svg

    def counting_optimize(svg_path, output_path, **kwargs):
        calls.append(svg_path)
        return real_optimize(svg_path, output_path, **kwargs)

    monkeypatch.setattr(optimized_cache, "optimize_svg", counting_optimize)

    reports = sync_service.sync_all(SyncOptions(force=True))

    assert set(reports) == {"web", "mobile"}
    assert all(r.optimized == {"logo.svg"} for r in reports.values())
    assert len(calls) == 1


def test_unreadable_source_file_is_not_deleted(
    sync_service, simple_config, source, destination, write_files, monkeypatch
):
    write_files(source, {"a.png": "a", "b.png": "b"})
    sync_service.sync_all(SyncOptions())

    from msyn.sync import scanner

    real_checksum = scanner.compute_checksum

    def locked(path: Path) -> str:
        if path.name == "b.png":
            raise FileError("Permission denied")
        return real_checksum(path)

    monkeypatch.setattr(scanner, "compute_checksum", locked)
    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.deleted == set()
    assert "b.png" in report.errors
    assert (destination / "b.png").exists()


def test_missing_source_directory_skips_target(
    sync_service, simple_config, destination, write_files, log_messages
):
    write_files(destination, {"a.png": "a"})

    report = sync_service.sync_all(SyncOptions())["web"]

    assert report.total_changes == 0
    assert (destination / "a.png").exists()
    assert any(m.startswith("Source directory not found") for m in log_messages)


def test_target_selection(sync_service, write_config, project_root, source, write_files):
    write_config(
        {
            "sourceDir": "assets",
            "targets": [
                {"name": "web", "destination": "web"},
                {"destination": "mobile", "framework": "expo"},
                {"name": "disabled", "destination": "disabled", "enabled": False},
            ],
        }
    )
    write_files(source, {"a.png": "a"})

    assert set(sync_service.sync_all(SyncOptions())) == {"web", "expo"}
    assert set(sync_service.sync_all(SyncOptions(targets=frozenset({"expo"})))) == {"expo"}
    assert not (project_root / "disabled").exists()


def test_no_enabled_targets(sync_service, write_config, settings, log_messages):
    write_config(
        {
            "sourceDir": "assets",
            "targets": [{"name": "web", "destination": "web", "enabled": False}],
        }
    )

    assert sync_service.sync_all(SyncOptions()) == {}
    assert not settings.version_path.exists()
    assert any("No enabled targets" in m for m in log_messages)


def test_missing_project_root_is_fatal(tmp_path):
    service = SyncService(MsynSettings(project_root=tmp_path / "missing"))
    with pytest.raises(ConfigError):
        service.sync_all(SyncOptions())


def test_optimize_all(sync_service, simple_config, source, write_files, simple_svg):
    write_files(source, {"logo.svg": simple_svg, "icons/x.svg": simple_svg, "a.png": "a"})

    first = sync_service.optimize_all()["assets/.optimized"]
    second = sync_service.optimize_all()["assets/.optimized"]
    forced = sync_service.optimize_all(force=True)["assets/.optimized"]

    assert sorted(first.optimized) == ["icons/x.svg", "logo.svg"]
    assert sorted(second.skipped) == ["icons/x.svg", "logo.svg"]
    assert second.optimized == []
    assert sorted(forced.optimized) == ["icons/x.svg", "logo.svg"]


def test_reset(sync_service, settings, simple_config, source, write_files, simple_svg):
    write_files(source, {"logo.svg": simple_svg})
    sync_service.sync_all(SyncOptions())
    assert settings.version_path.exists()

    removed = sync_service.reset(clear_cache=True)

    assert settings.version_path in removed
    assert not settings.version_path.exists()
    assert not (source / ".optimized").exists()
