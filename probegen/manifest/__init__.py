"""Manifest aggregation, canonical form and source selection."""

from __future__ import annotations

from .aggregator import aggregate
from .builder import ProbesBuilder, create_probes_builder
from .canonical import (
    ManifestParseError,
    ManifestValidationError,
    canonicalize,
    content_hash,
    parse_manifest,
    render_manifest,
    validate_manifest,
)

__all__ = [
    "ManifestParseError",
    "ManifestValidationError",
    "ProbesBuilder",
    "aggregate",
    "canonicalize",
    "content_hash",
    "create_probes_builder",
    "parse_manifest",
    "render_manifest",
    "validate_manifest",
]
