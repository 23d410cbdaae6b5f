"""Semantic version value and its on-disk store."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from relkit.core.result import Err, Ok, Result
from relkit.platform.files import atomic_write_text

BumpKind = Literal["patch", "minor", "major"]
BUMP_KINDS: tuple[BumpKind, ...] = ("patch", "minor", "major")

_VERSION_RE = re.compile(r"(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)")


@dataclass(frozen=True, slots=True, order=True)
class Version:
    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        if min(self.major, self.minor, self.patch) < 0:
            raise ValueError(f"version components must be non-negative: {self}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def to_tag(self) -> str:
        return f"v{self}"

    def bump(self, kind: BumpKind) -> Version:
        match kind:
            case "major":
                return Version(self.major + 1, 0, 0)
            case "minor":
                return Version(self.major, self.minor + 1, 0)
            case "patch":
                return Version(self.major, self.minor, self.patch + 1)
            case _:
                raise AssertionError(f"unexpected bump kind: {kind}")


def parse_version(text: str) -> Version | None:
    """Parse the canonical `major.minor.patch` form (no prefix, no leading zeros)."""
    m = _VERSION_RE.fullmatch(text)
    if m is None:
        return None
    return Version(int(m.group(1)), int(m.group(2)), int(m.group(3)))


@dataclass(frozen=True, slots=True)
class VersionError:
    kind: Literal["not_found", "malformed", "io_error"]
    message: str
    hint: str | None = None


class VersionStore:
    """Single-line version file, replaced atomically on every write."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Result[Version, VersionError]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Err(
                VersionError(
                    kind="not_found",
                    message=f"version file not found: {self._path}",
                    hint="create it with a single line such as 0.1.0",
                )
            )
        except OSError as e:
            return Err(VersionError(kind="io_error", message=f"cannot read version file: {e}"))

        version = parse_version(text.strip())
        if version is None:
            return Err(
                VersionError(
                    kind="malformed",
                    message=f"invalid version in {self._path}: {text.strip()!r}",
                    hint="expected major.minor.patch, e.g. 1.2.3",
                )
            )
        return Ok(version)

    def write(self, version: Version) -> Result[None, VersionError]:
        try:
            atomic_write_text(self._path, f"{version}\n")
        except OSError as e:
            return Err(VersionError(kind="io_error", message=f"cannot write version file: {e}"))
        return Ok(None)

    def peek(self, kind: BumpKind) -> Result[Version, VersionError]:
        """Return the version `bump(kind)` would produce, without writing."""
        return self.read().map(lambda v: v.bump(kind))

    def bump(self, kind: BumpKind) -> Result[Version, VersionError]:
        current = self.read()
        if isinstance(current, Err):
            return current

        new = current.value.bump(kind)
        written = self.write(new)
        if isinstance(written, Err):
            return written
        return Ok(new)
