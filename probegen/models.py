"""Core data models shared across probegen components."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

SCHEMA_VERSION = 1

ALLOWED_TYPES: Tuple[str, ...] = ("int", "uint", "char *", "string", "double", "json")

_TYPE_ALIASES = {"char*": "char *"}


def normalise_type(raw: str) -> Optional[str]:
    """Return the canonical spelling of an argument type, or None when unsupported."""
    value = _TYPE_ALIASES.get(raw, raw)
    if value in ALLOWED_TYPES:
        return value
    return None


@dataclass(frozen=True)
class Signature:
    """One probe declaration found in a source file."""

    probe_name: str
    arg_types: Tuple[str, ...] = ()


@dataclass
class ProbeAggregate:
    """All observed signatures for a probe name, merged into one canonical shape."""

    name: str
    arg_types: Tuple[str, ...]
    variants: Set[Tuple[str, ...]] = field(default_factory=set)

    def sorted_variants(self) -> List[Tuple[str, ...]]:
        return sorted(self.variants, key=lambda variant: (-len(variant), variant))


@dataclass(frozen=True)
class ProbeEntry:
    """A probe as it appears in the manifest."""

    name: str
    arg_types: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Manifest:
    """Declarative listing of a provider's probes."""

    provider: str
    probes: Tuple[ProbeEntry, ...] = ()
    module: Optional[str] = None
    schema_version: int = SCHEMA_VERSION


FileSignatureSet = Dict[str, List[Signature]]


def snapshot_entries(probes: Sequence[ProbeEntry]) -> List[str]:
    """Flatten probes into sorted ``name|type,type`` strings."""
    return sorted(f"{probe.name}|{','.join(probe.arg_types)}" for probe in probes)
