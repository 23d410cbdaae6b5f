"""Tests for relkit.output.console module."""

from __future__ import annotations

import pytest

from relkit.output.console import ConsoleProtocol, MockConsole, RichConsole, Style


class TestStyle:
    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.DIM) == "dim"


class TestMockConsole:
    def test_print_captures_message(self) -> None:
        console = MockConsole()
        console.print("hello")
        assert console.outputs[0].message == "hello"
        assert console.outputs[0].style == Style.DEFAULT

    def test_prefixed_helpers(self) -> None:
        console = MockConsole()
        console.success("built")
        console.error("failed")
        console.warning("careful")
        console.info("note")

        assert console.messages == ["OK built", "error: failed", "warning: careful", "info: note"]
        assert console.has_error()

    def test_find_and_text(self) -> None:
        console = MockConsole()
        console.header("checkpoint")
        console.newline()
        console.print("file: x.jsonl", Style.DIM)

        assert len(console.find("file:")) == 1
        assert console.text == "checkpoint\n\nfile: x.jsonl"
        assert not console.has_error()

    def test_satisfies_protocol(self) -> None:
        console: ConsoleProtocol = MockConsole()
        console.print("x")


class TestRichConsole:
    def test_does_not_parse_markup_in_messages(self, capsys: pytest.CaptureFixture[str]) -> None:
        console = RichConsole()
        console.print("[red]not markup[/red]")
        console.error("value [x] missing")

        out = capsys.readouterr().out
        assert "[red]not markup[/red]" in out
        assert "error: value [x] missing" in out
