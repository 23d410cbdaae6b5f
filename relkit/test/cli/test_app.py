from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from relkit import __version__
from relkit.cli.app import app
from relkit.cli.context import CONFIG_ENV, ROOT_ENV, VERBOSE_ENV


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # The root callback exports options through os.environ.
    for name in (ROOT_ENV, CONFIG_ENV, VERBOSE_ENV):
        monkeypatch.setenv(name, "")


def test_version() -> None:
    result = CliRunner().invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_commands_registered() -> None:
    result = CliRunner().invoke(app, ["--help"])

    assert result.exit_code == 0
    for name in (
        "check",
        "bump",
        "build",
        "publish",
        "verify",
        "release",
        "dry-run",
        "resume",
        "abandon",
        "status",
        "deps",
    ):
        assert name in result.output


def test_dry_run_against_root(tmp_path: Path) -> None:
    (tmp_path / "VERSION").write_text("0.9.9\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["--root", str(tmp_path), "dry-run", "major"])

    assert result.exit_code == 0, result.output
    assert "next version would be: 1.0.0" in result.output
    assert (tmp_path / "VERSION").read_text(encoding="utf-8") == "0.9.9\n"


def test_bad_root(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["--root", str(tmp_path / "missing"), "status"])

    assert result.exit_code == 1


def test_invalid_config_exits_config_error(tmp_path: Path) -> None:
    (tmp_path / "relkit.toml").write_text("[timeouts]\nbuild = -1\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["--root", str(tmp_path), "status"])

    assert result.exit_code == 2
