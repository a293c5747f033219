"""Native build invocation and manifest hash sidecars."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, List, Sequence

from ..logging import get_logger

CommandRunner = Callable[[Sequence[str], Path], Awaitable[int]]

SIDECAR_SUFFIX = ".sha256"
ARTIFACT_SIDECAR_SUFFIX = ".probes.sha256"


class BuildFailedError(RuntimeError):
    """Raised when the native build command exits non-zero."""

    def __init__(self, command: Sequence[str], returncode: int) -> None:
        super().__init__(f"Build command {' '.join(command)!r} exited with status {returncode}")
        self.command = list(command)
        self.returncode = returncode


class NativeBuildRunner:
    """Runs the configured build command as a child process."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        runner: CommandRunner | None = None,
    ) -> None:
        self.command = list(command)
        self.cwd = cwd
        self._runner = runner or self._default_runner
        self.logger = get_logger("build")

    async def run(self) -> None:
        self.logger.info("Running native build: %s", " ".join(self.command))
        returncode = await self._runner(self.command, self.cwd)
        if returncode != 0:
            raise BuildFailedError(self.command, returncode)

    @staticmethod
    async def _default_runner(command: Sequence[str], cwd: Path) -> int:
        try:
            process = await asyncio.create_subprocess_exec(*command, cwd=str(cwd))
        except FileNotFoundError:
            return 127
        return await process.wait()


def sidecar_path(manifest_path: Path) -> Path:
    return manifest_path.with_name(manifest_path.name + SIDECAR_SUFFIX)


def write_sidecars(
    manifest_path: Path, digest: str, *, root: Path, artifact_patterns: Sequence[str]
) -> List[Path]:
    """Write the manifest hash next to the manifest and every built artifact."""
    line = digest + "\n"
    written = [sidecar_path(manifest_path)]
    written[0].write_text(line, encoding="utf-8")
    for artifact in find_artifacts(root, artifact_patterns):
        target = artifact.with_name(artifact.name + ARTIFACT_SIDECAR_SUFFIX)
        target.write_text(line, encoding="utf-8")
        written.append(target)
    return written


def find_artifacts(root: Path, patterns: Sequence[str]) -> List[Path]:
    found = set()
    for pattern in patterns:
        for match in root.glob(pattern):
            if match.is_file() and not match.name.endswith(SIDECAR_SUFFIX):
                found.add(match)
    return sorted(found)


__all__ = [
    "BuildFailedError",
    "NativeBuildRunner",
    "find_artifacts",
    "sidecar_path",
    "write_sidecars",
]
