"""Where a run's manifest comes from, decided once at startup."""

from __future__ import annotations

import importlib.util
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Optional, Union

from ..config import ProbegenConfig
from ..logging import get_logger
from ..models import Manifest
from .builder import ProbesBuilder
from .canonical import (
    ManifestParseError,
    apply_legacy_defaults,
    load_manifest_file,
    manifest_from_dict,
)

logger = get_logger("sources")


class ManifestSourceError(RuntimeError):
    """Raised when a manifest-source plugin cannot be loaded or misbehaves."""


@dataclass(frozen=True)
class InlineBuilder:
    """Manifest produced by a user plugin module."""

    origin: Path
    factory: Callable[[], Manifest]

    def load(self) -> Manifest:
        return apply_legacy_defaults(self.factory())


@dataclass(frozen=True)
class StaticFile:
    """A previously written manifest reused as-is."""

    path: Path
    manifest: Manifest

    def load(self) -> Manifest:
        return apply_legacy_defaults(self.manifest)


@dataclass(frozen=True)
class HeuristicScan:
    """Manifest derived from scanning source directories."""


ManifestSource = Union[InlineBuilder, StaticFile, HeuristicScan]


def resolve_source(config: ProbegenConfig, *, rescan: bool = False) -> ManifestSource:
    """Pick the manifest source: existing file, then plugin, then scanning."""
    if not rescan and config.manifest_path.exists():
        existing = load_manifest_file(config.manifest_path)
        if existing is not None:
            logger.debug("Reusing existing manifest %s", config.manifest_path)
            return StaticFile(path=config.manifest_path, manifest=existing)
        logger.warning("Existing manifest %s is invalid; regenerating", config.manifest_path)

    if config.builder_module is not None:
        if config.builder_module.is_file():
            plugin = load_builder_module(config.builder_module, config)
            if plugin is not None:
                return plugin
        else:
            logger.warning("Builder module %s not found; scanning sources", config.builder_module)

    return HeuristicScan()


def load_builder_module(path: Path, config: ProbegenConfig) -> Optional[InlineBuilder]:
    """Import ``path`` and wrap whichever manifest export it offers.

    Recognised exports, in order: ``to_manifest()``, ``manifest`` (a Manifest,
    a mapping or a ProbesBuilder) and ``build_probes(builder)``.
    """
    module = _import_path(path)

    to_manifest = getattr(module, "to_manifest", None)
    if callable(to_manifest):
        return InlineBuilder(origin=path, factory=lambda: _coerce_manifest(to_manifest(), path))

    if hasattr(module, "manifest"):
        manifest = _coerce_manifest(getattr(module, "manifest"), path)
        return InlineBuilder(origin=path, factory=lambda: manifest)

    build_probes = getattr(module, "build_probes", None)
    if callable(build_probes):

        def _factory() -> Manifest:
            builder = ProbesBuilder(config.provider, config.module)
            result = build_probes(builder)
            return _coerce_manifest(builder if result is None else result, path)

        return InlineBuilder(origin=path, factory=_factory)

    logger.error("Builder module %s did not export a manifest, to_manifest() or build_probes()", path)
    return None


def _import_path(path: Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(f"_probegen_builder_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ManifestSourceError(f"Cannot import builder module {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise ManifestSourceError(f"Failed to load builder module {path}: {exc}") from exc
    return module


def _coerce_manifest(obj: Any, origin: Path) -> Manifest:
    if isinstance(obj, Manifest):
        return obj
    if isinstance(obj, ProbesBuilder):
        return obj.to_manifest()
    if isinstance(obj, dict):
        try:
            return manifest_from_dict(obj)
        except ManifestParseError as exc:
            raise ManifestSourceError(f"Builder module {origin} returned a malformed manifest: {exc}") from exc
    raise ManifestSourceError(
        f"Builder module {origin} produced {type(obj).__name__}; expected a manifest"
    )


__all__ = [
    "HeuristicScan",
    "InlineBuilder",
    "ManifestSource",
    "ManifestSourceError",
    "StaticFile",
    "load_builder_module",
    "resolve_source",
]
