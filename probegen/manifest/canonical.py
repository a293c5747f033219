"""Canonical serialisation, hashing and validation of probe manifests."""

from __future__ import annotations

import hashlib
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import (
    ALLOWED_TYPES,
    SCHEMA_VERSION,
    Manifest,
    ProbeAggregate,
    ProbeEntry,
    normalise_type,
)
from .aggregator import is_legacy_numeric_probe

_PROBE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class ManifestParseError(RuntimeError):
    """Raised when manifest JSON does not have the expected structure."""


class ManifestValidationError(RuntimeError):
    """Raised when a manifest violates the v1 schema constraints."""


def manifest_from_aggregates(
    aggregates: Sequence[ProbeAggregate], *, provider: str, module: Optional[str] = None
) -> Manifest:
    probes = tuple(ProbeEntry(name=entry.name, arg_types=tuple(entry.arg_types)) for entry in aggregates)
    return Manifest(provider=provider, module=module, probes=probes)


def apply_legacy_defaults(manifest: Manifest) -> Manifest:
    """Give bare ``probeN`` entries their historical single int argument."""
    probes = tuple(
        ProbeEntry(name=probe.name, arg_types=("int",))
        if not probe.arg_types and is_legacy_numeric_probe(probe.name)
        else probe
        for probe in manifest.probes
    )
    return Manifest(
        provider=manifest.provider,
        module=manifest.module,
        probes=probes,
        schema_version=manifest.schema_version,
    )


def validate_manifest(manifest: Manifest) -> None:
    """Raise ManifestValidationError unless the manifest is safe to persist."""
    if manifest.schema_version != SCHEMA_VERSION:
        raise ManifestValidationError(f"schemaVersion must be {SCHEMA_VERSION}")
    if not isinstance(manifest.provider, str) or not manifest.provider:
        raise ManifestValidationError("provider must be a non-empty string")
    if manifest.module is not None and not isinstance(manifest.module, str):
        raise ManifestValidationError("module must be a string when present")
    seen = set()
    for index, probe in enumerate(manifest.probes):
        if not isinstance(probe.name, str) or not _PROBE_NAME.fullmatch(probe.name):
            raise ManifestValidationError(f"probe[{index}].name invalid: {probe.name!r}")
        if probe.name in seen:
            raise ManifestValidationError(f"probe[{index}].name duplicated: {probe.name}")
        seen.add(probe.name)
        for position, arg_type in enumerate(probe.arg_types):
            if arg_type not in ALLOWED_TYPES:
                raise ManifestValidationError(
                    f"probe[{index}].arg_types[{position}] invalid: {arg_type!r}"
                )


def canonical_document(manifest: Manifest) -> Dict[str, Any]:
    document: Dict[str, Any] = {
        "schemaVersion": manifest.schema_version,
        "provider": manifest.provider,
    }
    if manifest.module:
        document["module"] = manifest.module
    document["probes"] = [
        {"name": probe.name, "arg_types": list(probe.arg_types)}
        for probe in sorted(manifest.probes, key=lambda probe: probe.name)
    ]
    return document


def canonicalize(manifest: Manifest) -> str:
    """Serialise with fixed key order, probes sorted by name and a trailing newline."""
    return _dump(canonical_document(manifest))


def content_hash(manifest: Manifest) -> str:
    return hashlib.sha256(canonicalize(manifest).encode("utf-8")).hexdigest()


def render_manifest(
    manifest: Manifest,
    aggregates: Sequence[ProbeAggregate] = (),
    *,
    development: bool = False,
) -> str:
    """Return the text written to disk.

    Development output additionally lists every observed argument variant per
    probe. The content hash is always taken from ``canonicalize`` instead.
    """
    if not development:
        return canonicalize(manifest)
    variants = {entry.name: entry.sorted_variants() for entry in aggregates}
    document = canonical_document(manifest)
    for probe in document["probes"]:
        observed = variants.get(probe["name"])
        if observed:
            probe["variants"] = [list(variant) for variant in observed]
    return _dump(document)


def parse_manifest(text: str) -> Manifest:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(f"manifest is not valid JSON: {exc}") from exc
    return manifest_from_dict(data)


def manifest_from_dict(data: Any) -> Manifest:
    """Build a Manifest from decoded JSON, normalising type aliases."""
    if not isinstance(data, Mapping):
        raise ManifestParseError("manifest root must be an object")
    probes_data = data.get("probes")
    if not isinstance(probes_data, list):
        raise ManifestParseError("probes must be an array")

    probes: List[ProbeEntry] = []
    for index, raw in enumerate(probes_data):
        if not isinstance(raw, Mapping):
            raise ManifestParseError(f"probe[{index}] must be an object")
        name = raw.get("name")
        if not isinstance(name, str):
            raise ManifestParseError(f"probe[{index}].name must be a string")
        arg_types = raw.get("arg_types", [])
        if not isinstance(arg_types, list) or not all(isinstance(item, str) for item in arg_types):
            raise ManifestParseError(f"probe[{index}].arg_types must be an array of strings")
        probes.append(
            ProbeEntry(
                name=name,
                arg_types=tuple(normalise_type(item) or item for item in arg_types),
            )
        )

    module = data.get("module")
    return Manifest(
        provider=data.get("provider"),  # type: ignore[arg-type]
        module=module if module else None,
        probes=tuple(probes),
        schema_version=data.get("schemaVersion"),  # type: ignore[arg-type]
    )


def load_manifest_file(path: Path) -> Optional[Manifest]:
    """Return the manifest stored at ``path``, or None when missing or unreadable."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    try:
        return parse_manifest(text)
    except ManifestParseError:
        return None


def _dump(document: Mapping[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


__all__ = [
    "ManifestParseError",
    "ManifestValidationError",
    "apply_legacy_defaults",
    "canonical_document",
    "canonicalize",
    "content_hash",
    "load_manifest_file",
    "manifest_from_aggregates",
    "manifest_from_dict",
    "parse_manifest",
    "render_manifest",
    "validate_manifest",
]
