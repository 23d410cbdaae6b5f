"""Typed configuration loading and access.

Configuration is read once, at CLI startup, into frozen dataclasses and then
passed explicitly to the orchestrator. Nothing in relkit reads environment
variables or global tool settings after that point.

Lookup order for a project root:
1. an explicit `--config` file (root-level keys, `relkit.toml` layout)
2. `<root>/relkit.toml`
3. `[tool.relkit]` in `<root>/pyproject.toml`
4. built-in defaults
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_float, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "TimeoutsConfig",
    "ToolsConfig",
    "load_config",
    "DEFAULT_CONFIG_NAME",
]

DEFAULT_CONFIG_NAME = "relkit.toml"

# Timeouts (seconds)
DEFAULT_TIMEOUT_SECONDS = 10 * 60.0
BUILD_TIMEOUT_SECONDS = 30 * 60.0
PUBLISH_TIMEOUT_SECONDS = 15 * 60.0
KILL_GRACE_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class TimeoutsConfig:
    """Per-category subprocess timeouts, plus the terminate-to-kill grace."""

    default: float = DEFAULT_TIMEOUT_SECONDS
    build: float = BUILD_TIMEOUT_SECONDS
    publish: float = PUBLISH_TIMEOUT_SECONDS
    grace: float = KILL_GRACE_SECONDS


@dataclass(frozen=True, slots=True)
class ToolsConfig:
    """Executable names (or paths) of the external collaborators."""

    git: str = "git"
    poetry: str = "poetry"
    twine: str = "twine"
    gh: str = "gh"


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container. Relative paths resolve against `root`."""

    root: Path = field(default_factory=Path.cwd)
    version_file: str = "VERSION"
    build_number_file: str = "BUILD_NUMBER"
    state_dir: str = ".relkit"
    dist_dir: str = "dist"
    build_dir: str = "build"
    release_branch: str = "main"
    environment: str = "development"
    package_name: str | None = None
    python: str = "python3"
    repository: str = "pypi"
    test_repository: str = "testpypi"
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)

    @property
    def version_path(self) -> Path:
        return self.root / self.version_file

    @property
    def build_number_path(self) -> Path:
        return self.root / self.build_number_file

    @property
    def state_path(self) -> Path:
        return self.root / self.state_dir

    @property
    def checkpoint_path(self) -> Path:
        return self.state_path / "checkpoint.jsonl"

    @property
    def lock_path(self) -> Path:
        return self.state_path / "run.lock"

    @property
    def log_path(self) -> Path:
        return self.state_path / "relkit.log"

    @property
    def dist_path(self) -> Path:
        return self.root / self.dist_dir

    @property
    def build_path(self) -> Path:
        return self.root / self.build_dir

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, root: Path) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: A timeout is not a positive number.
        """
        timeouts: StrDict = get_table(data, "timeouts") or {}
        tools: StrDict = get_table(data, "tools") or {}

        parsed_timeouts = TimeoutsConfig(
            default=_positive(timeouts, "default", DEFAULT_TIMEOUT_SECONDS),
            build=_positive(timeouts, "build", BUILD_TIMEOUT_SECONDS),
            publish=_positive(timeouts, "publish", PUBLISH_TIMEOUT_SECONDS),
            grace=_positive(timeouts, "grace", KILL_GRACE_SECONDS),
        )

        return cls(
            root=root,
            version_file=get_str(data, "version_file") or "VERSION",
            build_number_file=get_str(data, "build_number_file") or "BUILD_NUMBER",
            state_dir=get_str(data, "state_dir") or ".relkit",
            dist_dir=get_str(data, "dist_dir") or "dist",
            build_dir=get_str(data, "build_dir") or "build",
            release_branch=get_str(data, "release_branch") or "main",
            environment=get_str(data, "environment") or "development",
            package_name=get_str(data, "package_name"),
            python=get_str(data, "python") or "python3",
            repository=get_str(data, "repository") or "pypi",
            test_repository=get_str(data, "test_repository") or "testpypi",
            timeouts=parsed_timeouts,
            tools=ToolsConfig(
                git=get_str(tools, "git") or "git",
                poetry=get_str(tools, "poetry") or "poetry",
                twine=get_str(tools, "twine") or "twine",
                gh=get_str(tools, "gh") or "gh",
            ),
        )


def _positive(table: Mapping[str, object], key: str, default: float) -> float:
    if key not in table:
        return default
    value = get_float(table, key)
    if value is None or value <= 0:
        raise ValueError(f"timeouts.{key} must be a positive number, got {table[key]!r}")
    return value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and syntax errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def _locate(root: Path, explicit: Path | None) -> Result[tuple[StrDict, Path | None], ConfigError]:
    if explicit is not None:
        parsed = _parse_toml(explicit)
        if isinstance(parsed, Err):
            return parsed
        return Ok((parsed.value, explicit))

    own = root / DEFAULT_CONFIG_NAME
    if own.is_file():
        parsed = _parse_toml(own)
        if isinstance(parsed, Err):
            return parsed
        return Ok((parsed.value, own))

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        parsed = _parse_toml(pyproject)
        if isinstance(parsed, Err):
            return parsed
        tool = get_table(parsed.value, "tool") or {}
        section = tool.get("relkit")
        if section is not None:
            table = as_str_dict(section)
            if table is None:
                return Err(ConfigError("[tool.relkit] must be a table", path=pyproject))
            return Ok((table, pyproject))

    return Ok(({}, None))


def load_config(root: Path, path: Path | None = None) -> Result[Config, ConfigError]:
    """Load configuration for a project root.

    Args:
        root: Project root; relative paths in the config resolve against it.
        path: Explicit config file (overrides discovery).

    Returns:
        Ok(Config) on success (defaults when no config exists),
        Err(ConfigError) when a config exists but is invalid.
    """
    located = _locate(root, path)
    if isinstance(located, Err):
        return located

    data, source = located.value
    try:
        return Ok(Config.from_dict(data, root=root))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=source))
