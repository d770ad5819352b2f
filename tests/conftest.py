"""Common test fixtures."""

import json
import os
from pathlib import Path
from typing import Callable, Dict, Iterator, List

import pytest
from loguru import logger

from msyn.config import ConfigManager, MsynSettings
from msyn.sync import SyncService

SIMPLE_SVG = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    "<!-- Generator: Sketch 52.6 -->\n"
    '<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24" viewBox="0 0 24 24">\n'
    "  <title>icon</title>\n"
    "  <metadata>exported</metadata>\n"
    '  <rect x="2" y="2" width="20" height="20" fill="#000"/>\n'
    "</svg>\n"
)


@pytest.fixture
def project_root(tmp_path, monkeypatch) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    # keep MSYN_* variables and .env files of the developer machine out of the tests
    for name in list(os.environ):
        if name.startswith("MSYN_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def settings(project_root) -> MsynSettings:
    return MsynSettings(project_root=project_root)


@pytest.fixture
def config_manager(settings) -> ConfigManager:
    return ConfigManager(settings)


@pytest.fixture
def sync_service(settings, config_manager) -> SyncService:
    return SyncService(settings, config_manager)


@pytest.fixture
def write_config(settings) -> Callable[[dict], Path]:
    def _write(data: dict) -> Path:
        settings.config_path.write_text(json.dumps(data, indent=2))
        return settings.config_path

    return _write


@pytest.fixture
def write_files() -> Callable[[Path, Dict[str, str]], None]:
    """Create files below a directory from a {relative path: content} mapping."""

    def _write(directory: Path, files: Dict[str, str]) -> None:
        for name, content in files.items():
            path = directory / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)

    return _write


@pytest.fixture
def simple_config(write_config) -> dict:
    """One target fed from assets/, with an optimized cache inside the source tree."""
    config = {
        "sourceDir": "assets",
        "optimizedDir": "assets/.optimized",
        "targets": [{"name": "web", "destination": "public/assets"}],
    }
    write_config(config)
    return config


@pytest.fixture
def log_messages() -> Iterator[List[str]]:
    """Messages logged through loguru while the test runs."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def simple_svg() -> str:
    return SIMPLE_SVG
