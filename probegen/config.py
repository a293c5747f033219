"""Configuration loading for probegen (.probegen.yml)."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".probegen.yml"
DEFAULT_MANIFEST_PATH = "probes.manifest.json"
DEFAULT_SNAPSHOT_PATH = ".probegen/snapshot.json"
DEFAULT_PROVIDER = "nodeapp"

MANIFEST_ENV = "DTRACE_MANIFEST"
BUILDER_ENV = "DTRACE_PROBES_BUILDER"
DEV_ENV = "PROBEGEN_DEV"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class BuildConfig:
    """Native build invocation settings."""

    command: List[str] = field(default_factory=lambda: ["pnpm", "build"])
    artifacts: List[str] = field(default_factory=lambda: ["*.node"])


@dataclass
class WatchConfig:
    """Settle timing for ambiguous rename events."""

    settle_delay: float = 0.05
    max_retries: int = 5


@dataclass
class ProbegenConfig:
    """Represents the settings defined in .probegen.yml plus environment overrides."""

    root: Path
    provider: str = DEFAULT_PROVIDER
    module: Optional[str] = None
    manifest_path: Path = Path(DEFAULT_MANIFEST_PATH)
    snapshot_path: Path = Path(DEFAULT_SNAPSHOT_PATH)
    source_dirs: List[str] = field(default_factory=lambda: ["oldtests", "tests"])
    extensions: List[str] = field(default_factory=lambda: [".js", ".mjs", ".cjs", ".ts"])
    exclude_paths: List[str] = field(default_factory=list)
    builder_module: Optional[Path] = None
    development: bool = False
    build: BuildConfig = field(default_factory=BuildConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)

    def source_roots(self) -> List[Path]:
        return [self.root / name for name in self.source_dirs]


def load_config(
    config_path: Path, *, environ: Mapping[str, str] | None = None
) -> ProbegenConfig:
    """Load configuration from disk and apply environment overrides."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    config = ProbegenConfig(
        root=root,
        manifest_path=root / DEFAULT_MANIFEST_PATH,
        snapshot_path=root / DEFAULT_SNAPSHOT_PATH,
    )

    provider = _as_str(data.get("provider"))
    if provider is not None:
        if not provider:
            raise ConfigError("provider must be a non-empty string")
        config.provider = provider
    config.module = _as_str(data.get("module")) or None

    manifest_path = _as_str(data.get("manifest_path"))
    if manifest_path:
        config.manifest_path = root / manifest_path
    snapshot_path = _as_str(data.get("snapshot_path"))
    if snapshot_path:
        config.snapshot_path = root / snapshot_path

    if "source_dirs" in data:
        config.source_dirs = _as_str_list(data.get("source_dirs"))
    if "extensions" in data:
        config.extensions = [_normalise_extension(ext) for ext in _as_str_list(data.get("extensions"))]
    config.exclude_paths = _as_str_list(data.get("exclude_paths"))

    builder_module = _as_str(data.get("builder_module"))
    if builder_module:
        config.builder_module = root / builder_module
    config.development = bool(_as_bool(data.get("development")))

    build_data = _as_dict(data.get("build"))
    if build_data:
        command = build_data.get("command")
        if isinstance(command, str):
            config.build.command = shlex.split(command)
        elif isinstance(command, Sequence):
            config.build.command = _as_str_list(command)
        elif command is not None:
            raise ConfigError("build.command must be a string or a list of strings")
        if not config.build.command:
            raise ConfigError("build.command must not be empty")
        if "artifacts" in build_data:
            config.build.artifacts = _as_str_list(build_data.get("artifacts"))

    watch_data = _as_dict(data.get("watch"))
    if watch_data:
        delay = _as_float(watch_data.get("settle_delay"))
        if delay is not None:
            if delay < 0:
                raise ConfigError("watch.settle_delay must not be negative")
            config.watch.settle_delay = delay
        retries = _as_int(watch_data.get("max_retries"))
        if retries is not None:
            if retries < 0:
                raise ConfigError("watch.max_retries must not be negative")
            config.watch.max_retries = retries

    _apply_environment(config, env)
    return config


def _apply_environment(config: ProbegenConfig, env: Mapping[str, str]) -> None:
    manifest_override = env.get(MANIFEST_ENV)
    if manifest_override:
        config.manifest_path = (config.root / manifest_override).resolve()
    builder_override = env.get(BUILDER_ENV)
    if builder_override:
        config.builder_module = (config.root / builder_override).resolve()
    dev_override = _as_bool(env.get(DEV_ENV))
    if dev_override is not None:
        config.development = dev_override


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")
    return loaded


def _normalise_extension(value: str) -> str:
    value = value.strip().lower()
    return value if value.startswith(".") else f".{value}"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0", ""}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
