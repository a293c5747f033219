"""CLI entrypoints for probegen commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .build import BuildFailedError
from .config import ConfigError, load_config
from .logging import configure_logging
from .manifest.canonical import ManifestValidationError
from .manifest.sources import ManifestSourceError
from .orchestrator import Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    _add_verbose_option(parser, suppress_default=True)
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project root containing .probegen.yml (defaults to current directory).",
    )
    parser.add_argument(
        "--rescan",
        action="store_true",
        help="Scan sources even when a valid manifest already exists on disk.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="probegen",
        description="Compile tracing-probe manifests and drive the native build.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Regenerate the manifest and run the native build when probes changed.",
    )
    _add_common_options(build_parser)
    build_parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep watching source directories and rebuild on probe changes.",
    )
    build_parser.add_argument(
        "--force",
        action="store_true",
        help="Build even when the manifest hash is unchanged.",
    )

    emit_parser = subparsers.add_parser(
        "emit",
        help="Write the canonical manifest without building.",
    )
    _add_common_options(emit_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for probegen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    watch = bool(getattr(args, "watch", False))
    logger = configure_logging(
        verbose=bool(args.verbose),
        log_file=args.log_file,
        session="watch" if watch else args.command,
    )

    try:
        config = load_config(Path(args.path))
    except ConfigError as exc:
        parser.exit(1, f"probegen: {exc}\n")

    try:
        orchestrator = Orchestrator(
            config,
            force=bool(getattr(args, "force", False)),
            rescan=bool(args.rescan) or watch,
        )
        if args.command == "emit":
            outcome = orchestrator.emit()
            print(json.dumps({"path": str(outcome.path), "hash": outcome.hash}))
        elif args.command == "build":
            if watch:
                asyncio.run(orchestrator.watch())
            else:
                result = asyncio.run(orchestrator.run_once())
                if not result.built:
                    print(f"Probes already up to date ({result.hash})")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except BuildFailedError as exc:
        logger.error("%s", exc)
        sys.exit(exc.returncode)
    except (ManifestValidationError, ManifestSourceError) as exc:
        parser.exit(1, f"probegen: {exc}\n")
    except KeyboardInterrupt:
        parser.exit(130, "Interrupted\n")
    except Exception as exc:  # pragma: no cover
        parser.exit(1, f"probegen {args.command} failed: {exc}\nRun with --verbose for more details.\n")


if __name__ == "__main__":
    main(sys.argv[1:])
