from __future__ import annotations

from pathlib import Path

import pytest

from relkit.core.result import Err, Ok
from relkit.release.version import Version, VersionStore, parse_version


def test_parse_version() -> None:
    assert parse_version("1.2.3") == Version(1, 2, 3)
    assert parse_version("0.0.0") == Version(0, 0, 0)
    assert parse_version("10.20.30") == Version(10, 20, 30)


@pytest.mark.parametrize(
    "text", ["1.2", "v1.2.3", "1.2.3-beta", "01.2.3", "1.2.x", "", "1.2.3.4", "١.٢.٣", "1.2.３"]
)
def test_parse_version_rejects(text: str) -> None:
    assert parse_version(text) is None


def test_bump() -> None:
    v = Version(1, 2, 3)
    assert v.bump("patch") == Version(1, 2, 4)
    assert v.bump("minor") == Version(1, 3, 0)
    assert v.bump("major") == Version(2, 0, 0)


def test_ordering_and_tag() -> None:
    assert Version(1, 2, 3) < Version(1, 10, 0)
    assert Version(1, 2, 3).to_tag() == "v1.2.3"


def test_negative_component_rejected() -> None:
    with pytest.raises(ValueError):
        Version(1, -1, 0)


class TestVersionStore:
    def test_write_then_read(self, tmp_path: Path) -> None:
        store = VersionStore(tmp_path / "VERSION")

        assert isinstance(store.write(Version(0, 4, 1)), Ok)

        assert (tmp_path / "VERSION").read_text(encoding="utf-8") == "0.4.1\n"
        assert store.read() == Ok(Version(0, 4, 1))

    def test_read_tolerates_surrounding_whitespace(self, tmp_path: Path) -> None:
        (tmp_path / "VERSION").write_text("  2.0.0\n\n", encoding="utf-8")

        assert VersionStore(tmp_path / "VERSION").read() == Ok(Version(2, 0, 0))

    def test_bump_persists(self, tmp_path: Path) -> None:
        (tmp_path / "VERSION").write_text("1.2.3\n", encoding="utf-8")
        store = VersionStore(tmp_path / "VERSION")

        assert store.bump("minor") == Ok(Version(1, 3, 0))
        assert store.read() == Ok(Version(1, 3, 0))

    def test_peek_does_not_write(self, tmp_path: Path) -> None:
        (tmp_path / "VERSION").write_text("1.2.3\n", encoding="utf-8")
        store = VersionStore(tmp_path / "VERSION")

        assert store.peek("major") == Ok(Version(2, 0, 0))
        assert store.read() == Ok(Version(1, 2, 3))

    def test_missing_file(self, tmp_path: Path) -> None:
        result = VersionStore(tmp_path / "VERSION").read()

        assert isinstance(result, Err)
        assert result.error.kind == "not_found"
        assert result.error.hint is not None

    def test_malformed_file_is_not_bumped(self, tmp_path: Path) -> None:
        path = tmp_path / "VERSION"
        path.write_text("1.2\n", encoding="utf-8")
        store = VersionStore(path)

        result = store.bump("patch")

        assert isinstance(result, Err)
        assert result.error.kind == "malformed"
        assert path.read_text(encoding="utf-8") == "1.2\n"
