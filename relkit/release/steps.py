"""The release step catalogue.

Declaration order below is also the tie-break order of every plan, so it
reads as the natural order of a release: check, lock-check, bump, build,
publish, github-release, verify.
"""

from __future__ import annotations

import json
import shutil
from dataclasses import replace
from datetime import UTC, datetime

from relkit.core.result import Err
from relkit.platform.files import atomic_write_text
from relkit.release.context import WorkflowContext
from relkit.release.deps import DependencyService, run_sequence
from relkit.release.graph import StepGraph
from relkit.release.model import Step, StepAction, StepResult
from relkit.release.version import BUMP_KINDS, BumpKind, Version

__all__ = ["default_graph", "default_steps", "bump_step_id", "release_goal_id"]

_TOOL_TIMEOUT_SECONDS = 30.0


def bump_step_id(kind: BumpKind) -> str:
    return f"bump-{kind}"


def release_goal_id(kind: BumpKind) -> str:
    return f"release-{kind}"


def _current_version(ctx: WorkflowContext) -> Version | StepResult:
    if ctx.version is not None:
        return ctx.version
    read = ctx.versions.read()
    if isinstance(read, Err):
        return StepResult.failed("precondition", read.error.message)
    ctx.version = read.value
    return read.value


def _probe(ctx: WorkflowContext, command: str, *args: str) -> StepResult:
    return ctx.runner.run(command, list(args), timeout=_TOOL_TIMEOUT_SECONDS)


def _artifacts(ctx: WorkflowContext) -> list[str]:
    if ctx.artifacts:
        return list(ctx.artifacts)
    dist = ctx.config.dist_path
    if not dist.is_dir():
        return []
    return sorted(str(p.relative_to(ctx.config.root)) for p in dist.iterdir() if p.is_file())


# -----------------------------------------------------------------------------
# check
# -----------------------------------------------------------------------------


def check_release_ready(ctx: WorkflowContext) -> StepResult:
    """Required tools exist, the tree is clean, and we are on the release branch."""
    cfg = ctx.config
    missing: list[str] = []
    for tool in (cfg.tools.git, cfg.python, cfg.tools.gh):
        probe = _probe(ctx, tool, "--version")
        if probe.failure == "spawn_failed":
            missing.append(tool)
    if missing:
        return StepResult.failed("precondition", f"required tools not found: {', '.join(missing)}")

    status = _probe(ctx, cfg.tools.git, "status", "--porcelain")
    if not status.ok:
        return status
    if status.output.strip():
        return StepResult.failed(
            "precondition",
            "working directory is not clean",
            output=status.output,
        )

    branch_result = _probe(ctx, cfg.tools.git, "branch", "--show-current")
    if not branch_result.ok:
        return branch_result
    branch = branch_result.output.strip()
    if branch != cfg.release_branch:
        if not ctx.options.allow_any_branch:
            return StepResult.failed(
                "precondition",
                f"on branch '{branch}', not '{cfg.release_branch}' (pass --allow-branch to continue)",
            )
        ctx.console.warning(f"releasing from branch '{branch}', not '{cfg.release_branch}'")

    return StepResult.success(output=f"tools ok, tree clean, branch {branch}")


def check_lock_file(ctx: WorkflowContext) -> StepResult:
    return DependencyService(config=ctx.config, runner=ctx.runner).check()


# -----------------------------------------------------------------------------
# bump
# -----------------------------------------------------------------------------


def _bump_action(kind: BumpKind) -> StepAction:
    def bump(ctx: WorkflowContext) -> StepResult:
        before = ctx.versions.read()
        bumped = ctx.versions.bump(kind)
        if isinstance(bumped, Err):
            return StepResult.failed("precondition", bumped.error.message)
        ctx.version = bumped.value
        previous = before.value if not isinstance(before, Err) else "?"
        message = f"version bumped: {previous} -> {bumped.value}"
        ctx.console.success(message)
        return StepResult.success(output=message)

    bump.__name__ = f"bump_{kind}"
    return bump


# -----------------------------------------------------------------------------
# build
# -----------------------------------------------------------------------------


def _clean_build_outputs(ctx: WorkflowContext) -> None:
    root = ctx.config.root
    for path in (ctx.config.dist_path, ctx.config.build_path, *root.glob("*.egg-info")):
        if path.is_dir():
            shutil.rmtree(path)


def _git_fact(ctx: WorkflowContext, *args: str) -> str:
    result = _probe(ctx, ctx.config.tools.git, *args)
    return result.output.strip() if result.ok and result.output.strip() else "unknown"


def _build_number(ctx: WorkflowContext) -> int:
    """CI build counter from the build number file; 0 when absent or unreadable."""
    try:
        return int(ctx.config.build_number_path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return 0


def write_build_metadata(ctx: WorkflowContext, version: Version) -> str:
    """Record what was built, from where, into build_dir/metadata.json."""
    python = _probe(ctx, ctx.config.python, "--version")
    metadata = {
        "version": str(version),
        "build_number": _build_number(ctx),
        "commit": _git_fact(ctx, "rev-parse", "HEAD"),
        "commit_short": _git_fact(ctx, "rev-parse", "--short", "HEAD"),
        "branch": _git_fact(ctx, "branch", "--show-current"),
        "timestamp": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "python_version": python.output.strip() if python.ok else "unknown",
        "environment": ctx.environment,
    }
    path = ctx.config.build_path / "metadata.json"
    atomic_write_text(path, json.dumps(metadata, indent=2) + "\n")
    return str(path.relative_to(ctx.config.root))


def build_package(ctx: WorkflowContext) -> StepResult:
    cfg = ctx.config
    version = _current_version(ctx)
    if isinstance(version, StepResult):
        return version

    _clean_build_outputs(ctx)
    built = ctx.runner.run(cfg.python, ["-m", "build"], timeout=cfg.timeouts.build)
    if not built.ok:
        return built

    ctx.artifacts.clear()
    artifacts = _artifacts(ctx)
    if not artifacts:
        return StepResult.failed(
            "precondition",
            f"build produced no artifacts in {cfg.dist_dir}/",
            output=built.output,
        )

    checked = ctx.runner.run(cfg.tools.twine, ["check", *artifacts], timeout=cfg.timeouts.default)
    if checked.failure == "spawn_failed":
        ctx.console.warning("twine not found, skipping package validation")
    elif not checked.ok:
        return checked

    metadata = write_build_metadata(ctx, version)
    ctx.console.success(f"built {len(artifacts)} artifact(s) for {version}")
    return StepResult.success(
        output="\n".join([built.output.rstrip(), checked.output.rstrip(), f"metadata: {metadata}"]).strip(),
        artifacts=tuple(artifacts),
    )


# -----------------------------------------------------------------------------
# publish / verify
# -----------------------------------------------------------------------------


def _upload_action(test: bool) -> StepAction:
    def upload(ctx: WorkflowContext) -> StepResult:
        cfg = ctx.config
        artifacts = _artifacts(ctx)
        if not artifacts:
            return StepResult.failed("precondition", f"nothing to publish in {cfg.dist_dir}/")
        repository = cfg.test_repository if test else cfg.repository
        result = ctx.runner.run(
            cfg.tools.twine,
            ["upload", "--non-interactive", "--repository", repository, *artifacts],
            timeout=cfg.timeouts.publish,
        )
        if result.failure == "spawn_failed":
            return replace(result, reason="twine not found. Install with: pip install twine")
        if result.ok:
            ctx.console.success(f"uploaded {len(artifacts)} artifact(s) to {repository}")
        return result

    upload.__name__ = "publish_test" if test else "publish"
    return upload


def create_github_release(ctx: WorkflowContext) -> StepResult:
    cfg = ctx.config
    version = _current_version(ctx)
    if isinstance(version, StepResult):
        return version
    tag = version.to_tag()
    result = ctx.runner.run(
        cfg.tools.gh,
        ["release", "create", tag, "--title", tag, "--generate-notes", *_artifacts(ctx)],
        timeout=cfg.timeouts.publish,
    )
    if result.ok:
        ctx.console.success(f"GitHub release {tag} created")
    return result


def verify_release(ctx: WorkflowContext) -> StepResult:
    cfg = ctx.config
    version = _current_version(ctx)
    if isinstance(version, StepResult):
        return version
    tag = version.to_tag()

    result = run_sequence(
        ctx.runner,
        [(cfg.tools.gh, ["release", "view", tag, "--json", "tagName,url"])],
        timeout=cfg.timeouts.default,
    )
    if not result.ok:
        return result

    lines = [result.output]
    if cfg.package_name:
        lines.append(f"PyPI: https://pypi.org/project/{cfg.package_name}/{version}/")
        lines.append(f"install: pip install {cfg.package_name}=={version}")
    else:
        lines.append("set package_name in the config to get registry links")
    for line in lines[1:]:
        ctx.console.info(line)
    return StepResult.success(output="\n".join(lines))


# -----------------------------------------------------------------------------
# Catalogue
# -----------------------------------------------------------------------------


def default_steps() -> tuple[Step, ...]:
    bumps = tuple(
        Step(
            id=bump_step_id(kind),
            action=_bump_action(kind),
            idempotent=False,
            side_effects=True,
            description=f"bump {kind} version",
        )
        for kind in BUMP_KINDS
    )
    goals = tuple(
        Step(
            id=release_goal_id(kind),
            needs=("check", bump_step_id(kind), "build"),
            description=f"prepare a {kind} release",
        )
        for kind in BUMP_KINDS
    )
    return (
        Step(
            id="check",
            action=check_release_ready,
            description="required tools, clean tree, release branch",
        ),
        Step(
            id="lock-check",
            action=check_lock_file,
            description="poetry.lock is up to date",
        ),
        *bumps,
        Step(
            id="build",
            needs=("lock-check",),
            action=build_package,
            side_effects=True,
            description="build and validate distributions",
        ),
        Step(
            id="publish",
            needs=("build",),
            action=_upload_action(test=False),
            idempotent=False,
            side_effects=True,
            confirm=True,
            description="upload distributions to the package index",
        ),
        Step(
            id="github-release",
            needs=("publish",),
            action=create_github_release,
            idempotent=False,
            side_effects=True,
            confirm=True,
            description="create the GitHub release",
        ),
        Step(
            id="publish-test",
            needs=("build",),
            action=_upload_action(test=True),
            idempotent=False,
            side_effects=True,
            confirm=True,
            description="upload distributions to the test index",
        ),
        Step(
            id="verify",
            action=verify_release,
            description="release is visible on GitHub",
        ),
        *goals,
        Step(
            id="publish-release",
            needs=("publish", "github-release", "verify"),
            description="publish and verify the release",
        ),
    )


def default_graph() -> StepGraph:
    return StepGraph(default_steps())
