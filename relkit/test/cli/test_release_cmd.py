from __future__ import annotations

from pathlib import Path

import pytest
import typer

from relkit.cli.context import CLIContext
from relkit.core.config import Config
from relkit.core.errors import ErrorCode
from relkit.output.console import MockConsole
from relkit.platform.lock import RunLock
from relkit.release.model import StepResult
from relkit.release.orchestrator import ReleaseOrchestrator
from relkit.test.release._fakes import FakeRunner, clean_repo, fail, ok


def _ctx(tmp_path: Path, runner: FakeRunner, version: str = "1.2.3") -> CLIContext:
    config = Config(root=tmp_path)
    config.version_path.write_text(f"{version}\n", encoding="utf-8")
    console = MockConsole()
    return CLIContext(
        config=config,
        console=console,
        orchestrator=ReleaseOrchestrator(config=config, console=console, runner=runner),
    )


def _builds(tmp_path: Path, *, fails: bool = False) -> FakeRunner:
    def respond(command: str, args: tuple[str, ...]) -> StepResult | None:
        if args[:2] != ("-m", "build"):
            return None
        if fails:
            return fail(1, "error: backend failed")
        (tmp_path / "dist").mkdir(exist_ok=True)
        (tmp_path / "dist" / "demo.tar.gz").write_text("x", encoding="utf-8")
        return ok()

    return clean_repo(FakeRunner(responder=respond))


def _install(monkeypatch: pytest.MonkeyPatch, ctx: CLIContext) -> MockConsole:
    import relkit.cli.commands.release_cmd as release_cmd

    monkeypatch.setattr(release_cmd, "build_context", lambda: ctx)
    assert isinstance(ctx.console, MockConsole)
    return ctx.console


def test_dry_run_prints_plan(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd

    runner = FakeRunner()
    console = _install(monkeypatch, _ctx(tmp_path, runner))

    release_cmd.dry_run(release_cmd.Bump.major)

    assert "next version would be: 2.0.0" in console.text
    assert runner.calls == []


def test_release_success_prints_next_step(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path, _builds(tmp_path))
    console = _install(monkeypatch, ctx)

    release_cmd.release(release_cmd.Bump.patch, allow_branch=False)

    assert ctx.config.version_path.read_text(encoding="utf-8") == "1.2.4\n"
    assert "next: relkit publish --yes" in console.text


def test_release_failure_exits_aborted(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd

    console = _install(monkeypatch, _ctx(tmp_path, _builds(tmp_path, fails=True)))

    with pytest.raises(typer.Exit) as exc:
        release_cmd.release(release_cmd.Bump.patch, allow_branch=False)

    assert exc.value.exit_code == int(ErrorCode.ABORTED)
    assert "step 'build' failed" in console.text
    assert "backend failed" in console.text


def test_lock_held_exits_already_running(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path, _builds(tmp_path))
    _install(monkeypatch, ctx)
    holder = RunLock(ctx.config.lock_path)
    holder.acquire()

    with pytest.raises(typer.Exit) as exc:
        release_cmd.build()

    holder.release()
    assert exc.value.exit_code == int(ErrorCode.ALREADY_RUNNING)


def test_publish_without_yes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd

    console = _install(monkeypatch, _ctx(tmp_path, _builds(tmp_path)))

    with pytest.raises(typer.Exit) as exc:
        release_cmd.publish(test=False, yes=False)

    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)
    assert "--yes" in console.text


def test_publish_test_index(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd

    runner = _builds(tmp_path)
    _install(monkeypatch, _ctx(tmp_path, runner))

    release_cmd.publish(test=True, yes=True)

    assert runner.called("twine", "upload", "--non-interactive", "--repository", "testpypi")
    assert not runner.called("gh", "release", "create")


def test_resume_status_abandon(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd

    console = _install(monkeypatch, _ctx(tmp_path, _builds(tmp_path, fails=True)))
    with pytest.raises(typer.Exit):
        release_cmd.release(release_cmd.Bump.minor, allow_branch=False)

    release_cmd.status()
    assert "version: 1.3.0" in console.text
    assert "bump-minor: success" in console.text
    assert "build: failed" in console.text

    release_cmd.abandon()
    assert console.find("abandoned 'minor' run")

    with pytest.raises(typer.Exit) as exc:
        release_cmd.resume(force=[], yes=False, allow_branch=False)
    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)


def test_status_shows_interrupted_step(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd
    from relkit.release.checkpoint import Checkpoint

    ctx = _ctx(tmp_path, _builds(tmp_path, fails=True))
    console = _install(monkeypatch, ctx)
    with pytest.raises(typer.Exit):
        release_cmd.release(release_cmd.Bump.minor, allow_branch=False)
    Checkpoint(ctx.config.checkpoint_path).append("build", StepResult.started())

    release_cmd.status()

    assert "build: interrupted" in console.text


def test_malformed_version_aborts_bump(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path, FakeRunner())
    console = _install(monkeypatch, ctx)
    ctx.config.version_path.write_text("not-a-version\n", encoding="utf-8")

    with pytest.raises(typer.Exit) as exc:
        release_cmd.bump(release_cmd.Bump.patch)

    assert exc.value.exit_code == int(ErrorCode.ABORTED)
    assert "invalid version" in console.text
