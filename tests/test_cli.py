"""CLI parser and entrypoint tests."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from probegen.cli import _build_parser, main


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch) -> None:
    for name in ("DTRACE_MANIFEST", "DTRACE_PROBES_BUILDER", "PROBEGEN_DEV"):
        monkeypatch.delenv(name, raising=False)


def _project(tmp_path: Path, command: list[str]) -> Path:
    root = tmp_path / "project"
    (root / "tests").mkdir(parents=True)
    (root / "tests" / "app.js").write_text("dtp.addProbe('hit', 'int');\n", encoding="utf-8")
    config = {"build": {"command": command}}
    (root / ".probegen.yml").write_text(json.dumps(config), encoding="utf-8")
    return root


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "build"])
    assert args.verbose is True
    assert args.command == "build"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["emit", "--verbose"])
    assert args.verbose is True
    assert args.command == "emit"


def test_cli_build_flags() -> None:
    parser = _build_parser()
    args = parser.parse_args(["build", "--watch", "--force", "--rescan", "some/dir"])
    assert args.watch is True
    assert args.force is True
    assert args.rescan is True
    assert args.path == "some/dir"


def test_cli_defaults_to_current_directory() -> None:
    args = _build_parser().parse_args(["emit"])
    assert args.path == "."
    assert args.rescan is False


def test_cli_requires_command() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args([])


def test_emit_prints_path_and_hash(tmp_path: Path, capsys) -> None:
    root = _project(tmp_path, ["true"])

    main(["emit", str(root)])

    payload = json.loads(capsys.readouterr().out)
    assert payload["path"] == str(root.resolve() / "probes.manifest.json")
    assert len(payload["hash"]) == 64
    assert (root / "probes.manifest.json").exists()


def test_build_failure_exits_with_build_status(tmp_path: Path) -> None:
    root = _project(tmp_path, [sys.executable, "-c", "import sys; sys.exit(4)"])

    with pytest.raises(SystemExit) as excinfo:
        main(["build", str(root)])

    assert excinfo.value.code == 4
    assert not (root / "probes.manifest.json.sha256").exists()


def test_build_skips_when_up_to_date(tmp_path: Path, capsys) -> None:
    root = _project(tmp_path, [sys.executable, "-c", "pass"])

    main(["build", str(root)])
    capsys.readouterr()
    main(["build", "--rescan", str(root)])

    assert "Probes already up to date" in capsys.readouterr().out


def test_invalid_config_exits_with_error(tmp_path: Path, capsys) -> None:
    (tmp_path / ".probegen.yml").write_text("provider: ''\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["emit", str(tmp_path)])

    assert excinfo.value.code == 1
    assert "provider" in capsys.readouterr().err
