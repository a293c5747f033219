"""Source directory scanning and the per-file signature cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence

from .config import ProbegenConfig
from .extractor import extract_signatures
from .logging import get_logger
from .models import FileSignatureSet, Signature

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".probegen",
    "target",
}


@dataclass
class ExcludeRule:
    """A path pattern from ``exclude_paths`` in .probegen.yml."""

    pattern: str
    directory_only: bool
    anchored: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored or "/" in self.pattern:
            return fnmatchcase(rel_path, self.pattern)
        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_exclude_rule(pattern: str) -> Optional[ExcludeRule]:
    pattern = pattern.strip()
    if not pattern:
        return None
    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]
    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]
    if not pattern:
        return None
    return ExcludeRule(pattern=pattern, directory_only=directory_only, anchored=anchored)


class SourceScanner:
    """Owns the FileSignatureSet for one project.

    Keys are paths relative to the project root in POSIX form so that the
    aggregate does not depend on where the checkout lives.
    """

    def __init__(self, config: ProbegenConfig) -> None:
        self.root = config.root.resolve()
        self.roots = [path.resolve() for path in config.source_roots()]
        self.extensions = {ext.lower() for ext in config.extensions}
        self._rules: List[ExcludeRule] = [
            rule for rule in (_build_exclude_rule(p) for p in config.exclude_paths) if rule is not None
        ]
        self._signatures: FileSignatureSet = {}
        self.logger = get_logger("scanner")

    @property
    def signatures(self) -> Mapping[str, Sequence[Signature]]:
        return self._signatures

    def rescan(self) -> FileSignatureSet:
        """Rebuild the signature cache from every source file on disk."""
        fresh: FileSignatureSet = {}
        for path in self._iter_files():
            signatures = self._read_signatures(path)
            if signatures is not None:
                fresh[self.key_for(path)] = signatures
        self._signatures = fresh
        self.logger.debug("Scanned %d source files", len(fresh))
        return fresh

    def update_file(self, path: Path) -> bool:
        """Re-extract one file; returns False when the file is ignored or unreadable."""
        path = Path(path).resolve()
        if not self.accepts(path):
            return False
        key = self.key_for(path)
        signatures = self._read_signatures(path)
        if signatures is None:
            self._signatures.pop(key, None)
            return False
        self._signatures[key] = signatures
        return True

    def remove_file(self, path: Path) -> bool:
        path = Path(path).resolve()
        return self._signatures.pop(self.key_for(path), None) is not None

    def is_tracked(self, path: Path) -> bool:
        return self.key_for(Path(path).resolve()) in self._signatures

    def accepts(self, path: Path) -> bool:
        """Return True when ``path`` lives under a source root and has a scanned suffix."""
        path = Path(path).resolve()
        if path.suffix.lower() not in self.extensions:
            return False
        root = self._owning_root(path)
        if root is None:
            return False
        rel_parts = path.relative_to(root).parts
        if any(part in _EXCLUDED_DIRS for part in rel_parts[:-1]):
            return False
        directory = path.parent
        while directory != root:
            if self._is_excluded(self.key_for(directory), True):
                return False
            directory = directory.parent
        return not self._is_excluded(self.key_for(path), False)

    def key_for(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    # ------------------------------------------------------------------
    # Internal helpers

    def _owning_root(self, path: Path) -> Optional[Path]:
        for root in self.roots:
            try:
                path.relative_to(root)
            except ValueError:
                continue
            return root
        return None

    def _is_excluded(self, rel_path: str, is_dir: bool) -> bool:
        return any(rule.matches(rel_path, is_dir) for rule in self._rules)

    def _iter_files(self) -> Iterator[Path]:
        for root in self.roots:
            if not root.is_dir():
                continue
            for dirpath, dirnames, filenames in os.walk(root):
                current = Path(dirpath)
                dirnames[:] = sorted(
                    name
                    for name in dirnames
                    if name not in _EXCLUDED_DIRS
                    and not self._is_excluded(self.key_for(current / name), True)
                )
                for filename in sorted(filenames):
                    path = current / filename
                    if path.suffix.lower() not in self.extensions:
                        continue
                    if self._is_excluded(self.key_for(path), False):
                        continue
                    yield path

    def _read_signatures(self, path: Path) -> Optional[List[Signature]]:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self.logger.debug("Skipping unreadable source %s: %s", path, exc)
            return None
        return extract_signatures(text)


__all__ = ["ExcludeRule", "SourceScanner"]
