"""Configuration management for msyn."""

import json
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from msyn.file_utils import FileError, write_file_atomic

CONFIG_FILE_NAME = ".msyn.json"
VERSION_FILE_NAME = ".asset-versions.json"
CONFIG_VERSION = "1.1.0"
DEFAULT_WATCH_DELAY = 2000
OPTIMIZED_DIR_NAME = ".optimized"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded, saved or resolved."""

    pass


class MsynSettings(BaseSettings):
    """Process level settings, overridable through MSYN_* environment variables."""

    project_root: Path = Field(
        default_factory=Path.cwd,
        description="Directory holding .msyn.json and the version manifest",
    )
    config_file: str = CONFIG_FILE_NAME
    version_file: str = VERSION_FILE_NAME
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    # Accepted for compatibility; messages are always English
    lang: Literal["en", "ja"] = "en"

    model_config = SettingsConfigDict(
        env_prefix="MSYN_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def config_path(self) -> Path:
        return self.project_root / self.config_file

    @property
    def version_path(self) -> Path:
        return self.project_root / self.version_file

    def resolve_project_root(self) -> Path:
        """Return the absolute project root.

        Raises:
            ConfigError: If the project root does not exist or is not a directory
        """
        root = self.project_root.expanduser()
        if not root.is_dir():
            raise ConfigError(f"Project root is not a directory: {root}")
        return root.resolve()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AssetDirectory(CamelModel):
    """Source and optimized cache directories of one asset type."""

    source: str
    optimized: Optional[str] = None

    @field_validator("source")
    @classmethod
    def source_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("asset source directory cannot be empty")
        return v


class TargetConfig(CamelModel):
    """A framework destination as written in .msyn.json."""

    name: Optional[str] = None
    destination: str
    framework: Optional[str] = None
    type: Optional[str] = None
    enabled: bool = True
    asset_type: Optional[str] = None
    formats: Optional[List[str]] = None

    @field_validator("destination")
    @classmethod
    def destination_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("target destination cannot be empty")
        return v

    @field_validator("formats")
    @classmethod
    def normalize_formats(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return None
        formats = [f.strip().lstrip(".").lower() for f in v if f and f.strip().lstrip(".")]
        return formats or None

    @property
    def target_id(self) -> str:
        """Key of this target in the version manifest."""
        if self.name:
            return self.name
        base = self.framework or self.destination
        return f"{base}:{self.asset_type}" if self.asset_type else base

    def matches(self, names: Iterable[str]) -> bool:
        """True if any of the names selects this target by id, name or framework."""
        candidates = {self.target_id, self.name, self.framework}
        return any(name in candidates for name in names)


@dataclass(frozen=True)
class Target:
    """A target with every path resolved against the project root."""

    target_id: str
    destination: Path
    source: Path
    optimized: Optional[Path] = None
    enabled: bool = True
    asset_type: Optional[str] = None
    formats: Optional[Tuple[str, ...]] = None


def _optimized_dir_for(source: str) -> str:
    return f"{source.rstrip('/')}/{OPTIMIZED_DIR_NAME}/"


class MsynConfig(CamelModel):
    """The .msyn.json document."""

    version: str = CONFIG_VERSION
    language: str = "en"
    source_dir: Optional[str] = None
    optimized_dir: Optional[str] = None
    assets: Dict[str, AssetDirectory] = Field(default_factory=dict)
    targets: List[TargetConfig] = Field(default_factory=list)
    watch: bool = True
    watch_delay: int = Field(DEFAULT_WATCH_DELAY, gt=0)
    optimize: bool = True

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_formats(cls, data: Any) -> Any:
        """Upgrade documents written by older versions of the tool."""
        if not isinstance(data, dict):
            return data

        if "assets" not in data and isinstance(data.get("source"), str):
            logger.warning("Old configuration format detected, converting to new format")
            source = data["source"]
            data = {k: v for k, v in data.items() if k != "source"}
            data["assets"] = {
                "images": {"source": source, "optimized": _optimized_dir_for(source)}
            }
            data["targets"] = [
                {**t, "assetType": t.get("assetType") or "images"}
                for t in data.get("targets") or []
                if isinstance(t, dict)
            ]
            data["version"] = CONFIG_VERSION

        if "targets" not in data and isinstance(data.get("modules"), list):
            logger.warning("Module based configuration detected, converting modules to targets")
            data = dict(data)
            targets = []
            for module in data.pop("modules"):
                if not isinstance(module, dict) or not isinstance(module.get("name"), str):
                    raise ValueError("every module needs a name")
                if not isinstance(module.get("targetDir") or "", str):
                    raise ValueError(f"targetDir of module {module['name']} must be a string")
                destination = PurePosixPath(module["name"], module.get("targetDir") or "")
                targets.append(
                    {
                        "name": module["name"],
                        "destination": destination.as_posix(),
                        "enabled": module.get("enabled", True),
                    }
                )
            data["targets"] = targets
            options = data.pop("options", None) or {}
            if not isinstance(options, dict):
                raise ValueError("options must be an object")
            if "autoOptimize" in options:
                data.setdefault("optimize", options["autoOptimize"])
            if "watchDelay" in options:
                data.setdefault("watchDelay", options["watchDelay"])
            if data.get("sourceDir") and not isinstance(data["sourceDir"], str):
                raise ValueError("sourceDir must be a string")
            if data.get("sourceDir") and not data.get("optimizedDir"):
                data["optimizedDir"] = _optimized_dir_for(data["sourceDir"])

        return data

    @model_validator(mode="after")
    def check_targets(self) -> "MsynConfig":
        seen = set()
        for target in self.targets:
            if target.target_id in seen:
                raise ValueError(f"duplicate target id: {target.target_id}")
            seen.add(target.target_id)
            # raises ConfigError -> surfaced as a validation failure
            try:
                self.asset_directory_for(target)
            except ConfigError as e:
                raise ValueError(str(e)) from e
        return self

    def asset_directory_for(self, target: TargetConfig) -> AssetDirectory:
        """Pick the source tree a target is fed from."""
        if target.asset_type and target.asset_type in self.assets:
            return self.assets[target.asset_type]
        if self.source_dir:
            return AssetDirectory(source=self.source_dir, optimized=self.optimized_dir)
        raise ConfigError(f"target {target.target_id} has no source directory")

    def resolve_targets(self, project_root: Path) -> List[Target]:
        """Resolve every configured target against the project root."""
        resolved = []
        for target in self.targets:
            assets = self.asset_directory_for(target)
            resolved.append(
                Target(
                    target_id=target.target_id,
                    destination=project_root / target.destination,
                    source=project_root / assets.source,
                    optimized=project_root / assets.optimized if assets.optimized else None,
                    enabled=target.enabled,
                    asset_type=target.asset_type,
                    formats=tuple(target.formats) if target.formats else None,
                )
            )
        return resolved

    def select_targets(self, names: Optional[Iterable[str]] = None) -> List[TargetConfig]:
        """Enabled targets, optionally narrowed to the given names."""
        enabled = [t for t in self.targets if t.enabled]
        if names is None:
            return enabled
        names = list(names)
        return [t for t in enabled if t.matches(names)]

    def optimized_roots(self, project_root: Path) -> List[Path]:
        """Every configured optimized cache directory."""
        roots = [project_root / a.optimized for a in self.assets.values() if a.optimized]
        if self.optimized_dir:
            roots.append(project_root / self.optimized_dir)
        return list(dict.fromkeys(roots))


DEFAULT_CONFIG: Dict[str, Any] = {
    "version": CONFIG_VERSION,
    "language": "en",
    "assets": {
        "images": {"source": "assets/images/", "optimized": "assets/images/.optimized/"},
        "icons": {"source": "assets/icons/", "optimized": "assets/icons/.optimized/"},
        "fonts": {"source": "assets/fonts/", "optimized": None},
    },
    "targets": [
        {
            "destination": "public/images",
            "framework": "nextjs",
            "type": "web",
            "formats": ["webp", "jpg", "png", "svg"],
            "assetType": "images",
        }
    ],
    "watch": True,
    "watchDelay": DEFAULT_WATCH_DELAY,
    "optimize": True,
}


def default_config() -> MsynConfig:
    return MsynConfig.model_validate(DEFAULT_CONFIG)


class ConfigManager:
    """Loads and saves the .msyn.json document of a project."""

    def __init__(self, settings: Optional[MsynSettings] = None):
        self.settings = settings or MsynSettings()
        self.config_file = self.settings.config_path

    def load_config(self) -> MsynConfig:
        """Load the configuration, falling back to defaults on any problem.

        Never raises: a missing file is normal, anything else is logged as a warning.
        """
        if not self.config_file.exists():
            logger.debug(f"No configuration at {self.config_file}, using defaults")
            return default_config()

        try:
            data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to load configuration: {self.config_file}: {e}")
            return default_config()
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to load configuration: {self.config_file}: invalid JSON: {e}")
            return default_config()

        if not isinstance(data, dict):
            logger.warning(
                f"Failed to load configuration: {self.config_file}: expected a JSON object"
            )
            return default_config()

        try:
            config = MsynConfig.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Failed to load configuration: {self.config_file}: {e}")
            return default_config()

        logger.debug(f"Configuration loaded from: {self.config_file}")
        return config

    def save_config(self, config: MsynConfig) -> None:
        """Write the configuration as camelCase JSON.

        Raises:
            ConfigError: If the file cannot be written
        """
        content = json.dumps(config.model_dump(by_alias=True, exclude_none=True), indent=2)
        try:
            write_file_atomic(self.config_file, content + "\n")
        except FileError as e:
            raise ConfigError(f"Failed to save configuration: {e}") from e
        logger.info(f"Configuration saved: {self.config_file}")

    def reset_config(self) -> MsynConfig:
        """Overwrite the configuration file with the built-in defaults."""
        config = default_config()
        self.save_config(config)
        return config
