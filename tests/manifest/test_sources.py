"""Tests for manifest source resolution and the probes builder."""

from __future__ import annotations

import pytest

from probegen.manifest.builder import ProbesBuilder, create_probes_builder
from probegen.manifest.canonical import canonicalize
from probegen.manifest.sources import (
    HeuristicScan,
    InlineBuilder,
    ManifestSourceError,
    StaticFile,
    resolve_source,
)
from probegen.models import Manifest, ProbeEntry


def test_builder_collects_and_replaces_probes() -> None:
    builder = create_probes_builder("svc", "mod")
    builder.add_probe("start", "int").addProbe("stop", "char*").add_probe("start", "int", "json")

    manifest = builder.to_manifest()

    assert manifest.provider == "svc"
    assert manifest.module == "mod"
    assert manifest.probes == (
        ProbeEntry("start", ("int", "json")),
        ProbeEntry("stop", ("char *",)),
    )


def test_builder_rejects_invalid_input() -> None:
    builder = ProbesBuilder("svc")
    with pytest.raises(ValueError, match="invalid probe name"):
        builder.add_probe("not valid")
    with pytest.raises(ValueError, match="invalid probe name"):
        builder.add_probe("trailing\n")
    with pytest.raises(ValueError, match="invalid type"):
        builder.add_probe("ok", "float")


def test_resolve_defaults_to_scanning(source_tree) -> None:
    assert isinstance(resolve_source(source_tree.config()), HeuristicScan)


def test_resolve_prefers_existing_manifest(source_tree) -> None:
    manifest = Manifest(provider="nodeapp", probes=(ProbeEntry("p1", ("int",)),))
    source_tree.write({"probes.manifest.json": canonicalize(manifest)})

    source = resolve_source(source_tree.config())

    assert isinstance(source, StaticFile)
    assert source.load() == manifest


def test_rescan_ignores_existing_manifest(source_tree) -> None:
    source_tree.write({"probes.manifest.json": canonicalize(Manifest(provider="nodeapp"))})

    assert isinstance(resolve_source(source_tree.config(), rescan=True), HeuristicScan)


def test_corrupt_manifest_falls_back_to_scanning(source_tree) -> None:
    source_tree.write({"probes.manifest.json": "{ not json"})

    assert isinstance(resolve_source(source_tree.config()), HeuristicScan)


def test_plugin_exporting_to_manifest(source_tree) -> None:
    source_tree.write(
        {
            "probes_plugin.py": """
            def to_manifest():
                return {
                    "schemaVersion": 1,
                    "provider": "plugin",
                    "probes": [{"name": "probe2", "arg_types": []}],
                }
            """,
        }
    )
    config = source_tree.config("builder_module: probes_plugin.py\n")

    source = resolve_source(config)

    assert isinstance(source, InlineBuilder)
    manifest = source.load()
    assert manifest.provider == "plugin"
    assert manifest.probes == (ProbeEntry("probe2", ("int",)),)


def test_plugin_exporting_build_probes(source_tree) -> None:
    source_tree.write(
        {
            "probes_plugin.py": """
            def build_probes(builder):
                builder.add_probe("request", "char *", "int")
            """,
        }
    )
    config = source_tree.config("provider: web\nbuilder_module: probes_plugin.py\n")

    manifest = resolve_source(config).load()

    assert manifest.provider == "web"
    assert manifest.probes == (ProbeEntry("request", ("char *", "int")),)


def test_plugin_exporting_manifest_object(source_tree) -> None:
    source_tree.write(
        {
            "probes_plugin.py": """
            from probegen.manifest.builder import ProbesBuilder

            manifest = ProbesBuilder("obj").add_probe("ping")
            """,
        }
    )
    config = source_tree.config("builder_module: probes_plugin.py\n")

    manifest = resolve_source(config).load()

    assert manifest.provider == "obj"
    assert manifest.probes == (ProbeEntry("ping", ()),)


def test_plugin_without_exports_falls_back_to_scanning(source_tree) -> None:
    source_tree.write({"probes_plugin.py": "VALUE = 1\n"})
    config = source_tree.config("builder_module: probes_plugin.py\n")

    assert isinstance(resolve_source(config), HeuristicScan)


def test_plugin_import_error_is_reported(source_tree) -> None:
    source_tree.write({"probes_plugin.py": "raise RuntimeError('boom')\n"})
    config = source_tree.config("builder_module: probes_plugin.py\n")

    with pytest.raises(ManifestSourceError, match="boom"):
        resolve_source(config)
