"""Heuristic extraction of probe declarations from source text.

Two declaration shapes are recognised on ``.addProbe(`` / ``.add_probe(`` calls:

* static: ``addProbe('name', 'int', 'char *')`` (types may also be wrapped in an
  array literal, ``addProbe('name', ['int'])``);
* dynamic: ``addProbe('probe' + i, 'int')`` where ``i`` is bounded by a simple
  counting loop ``for (var i = N; i < M; i++)`` earlier in the same file.

Anything else is ignored. Nested loops, computed bounds and probes registered
from another file are not followed.
"""

from __future__ import annotations

import re
from typing import Dict, Iterator, List, Optional, Tuple

from .models import Signature, normalise_type

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
_LITERAL = r"""(?:'[^'\n]*'|"[^"\n]*"|`[^`\n]*`)"""
_CALL = r"\.(?:addProbe|add_probe)\s*\(\s*"
_ARGS = (
    rf"(?P<args>(?:\s*,\s*(?:{_LITERAL}|\[\s*(?:{_LITERAL}\s*(?:,\s*{_LITERAL}\s*)*,?\s*)?\]))*)"
    r"\s*,?\s*\)"
)

_STATIC_RE = re.compile(_CALL + rf"(?P<q>['\"`])(?P<name>{_IDENT})(?P=q)" + _ARGS)
_DYNAMIC_RE = re.compile(
    _CALL + rf"(?P<q>['\"`])(?P<prefix>{_IDENT})(?P=q)\s*\+\s*(?P<var>{_IDENT})" + _ARGS
)
_LITERAL_RE = re.compile(r"""'([^'\n]*)'|"([^"\n]*)"|`([^`\n]*)`""")
_LOOP_RE = re.compile(
    rf"for\s*\(\s*(?:(?:var|let|const|int|unsigned|size_t)\s+)?(?P<var>{_IDENT})\s*=\s*(?P<start>\d+)\s*;"
    rf"\s*(?P=var)\s*<\s*(?P<end>\d+)\s*;\s*(?P<step>[^)]*)\)"
)
_STEP_RE = re.compile(
    rf"^(?:\+\+\s*(?P<pre>{_IDENT})|(?P<post>{_IDENT})\s*(?:\+\+|\+=\s*1)|(?P<assign>{_IDENT})\s*=\s*(?P=assign)\s*\+\s*1)$"
)

LoopRange = Tuple[int, int, int]  # (position, start, end)


def extract_signatures(text: str) -> List[Signature]:
    """Return probe signatures declared in ``text`` in source order.

    Duplicates are kept; merging happens in the aggregator.
    """
    found: List[Tuple[int, List[Signature]]] = []

    for match in _STATIC_RE.finditer(text):
        types = _literal_types(match.group("args"))
        found.append((match.start(), [Signature(match.group("name"), types)]))

    loops = _loop_ranges(text)
    for match in _DYNAMIC_RE.finditer(text):
        bounds = _enclosing_range(loops.get(match.group("var"), []), match.start())
        if bounds is None:
            continue
        start, end = bounds
        prefix = match.group("prefix")
        types = _literal_types(match.group("args"))
        found.append(
            (match.start(), [Signature(f"{prefix}{index}", types) for index in range(start, end)])
        )

    found.sort(key=lambda item: item[0])
    return [signature for _, signatures in found for signature in signatures]


def _literal_types(args: str) -> Tuple[str, ...]:
    types: List[str] = []
    for literal in _iter_literals(args):
        normalised = normalise_type(literal)
        if normalised is not None:
            types.append(normalised)
    return tuple(types)


def _iter_literals(segment: str) -> Iterator[str]:
    for match in _LITERAL_RE.finditer(segment):
        yield next(group for group in match.groups() if group is not None)


def _loop_ranges(text: str) -> Dict[str, List[LoopRange]]:
    ranges: Dict[str, List[LoopRange]] = {}
    for match in _LOOP_RE.finditer(text):
        var = match.group("var")
        step = _STEP_RE.match(match.group("step").strip())
        if step is None:
            continue
        if var not in (step.group("pre"), step.group("post"), step.group("assign")):
            continue
        ranges.setdefault(var, []).append(
            (match.start(), int(match.group("start")), int(match.group("end")))
        )
    return ranges


def _enclosing_range(loops: List[LoopRange], position: int) -> Optional[Tuple[int, int]]:
    """Pick the closest loop that starts before ``position``."""
    best: Optional[LoopRange] = None
    for loop in loops:
        if loop[0] < position and (best is None or loop[0] > best[0]):
            best = loop
    if best is None:
        return None
    return best[1], best[2]


__all__ = ["extract_signatures"]
