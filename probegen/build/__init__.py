"""Native build scheduling and invocation."""

from .runner import BuildFailedError, NativeBuildRunner, sidecar_path, write_sidecars
from .scheduler import BuildScheduler, BuildState

__all__ = [
    "BuildFailedError",
    "BuildScheduler",
    "BuildState",
    "NativeBuildRunner",
    "sidecar_path",
    "write_sidecars",
]
