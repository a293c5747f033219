"""Programmatic manifest construction for manifest-source plugins."""

from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

from ..models import ALLOWED_TYPES, Manifest, ProbeEntry, normalise_type

_PROBE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class ProbesBuilder:
    """Collects probe declarations eagerly, rejecting invalid names and types.

    Re-adding a probe replaces its argument list.
    """

    def __init__(self, provider: str, module: Optional[str] = None) -> None:
        self.provider = provider
        self.module = module
        self._probes: Dict[str, Tuple[str, ...]] = {}

    def add_probe(self, name: str, *arg_types: str) -> "ProbesBuilder":
        if not _PROBE_NAME.fullmatch(name):
            raise ValueError(f"invalid probe name {name!r}")
        normalised = []
        for arg_type in arg_types:
            value = normalise_type(arg_type)
            if value is None:
                raise ValueError(
                    f"invalid type {arg_type!r}; expected one of {', '.join(ALLOWED_TYPES)}"
                )
            normalised.append(value)
        self._probes[name] = tuple(normalised)
        return self

    addProbe = add_probe

    def to_manifest(self) -> Manifest:
        return Manifest(
            provider=self.provider,
            module=self.module,
            probes=tuple(ProbeEntry(name, types) for name, types in self._probes.items()),
        )


def create_probes_builder(provider: str, module: Optional[str] = None) -> ProbesBuilder:
    return ProbesBuilder(provider, module)


__all__ = ["ProbesBuilder", "create_probes_builder"]
