"""Tests for the CLI Ensure helpers."""

from pathlib import Path

import pytest

from lilyenv.cli.ensure import Ensure


class TestEnsureInvariant:
    def test_passes_when_condition_holds(self) -> None:
        Ensure.invariant(True, "never shown")

    def test_exits_with_styled_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            Ensure.invariant(False, "Invalid key: colour")

        assert exc_info.value.code == 1
        captured = capsys.readouterr()
        assert "Error:" in captured.err
        assert "Invalid key: colour" in captured.err
        assert captured.out == ""


class TestEnsureDirectoryExists:
    def test_passes_for_directory(self, tmp_path: Path) -> None:
        Ensure.directory_exists(tmp_path)

    def test_file_is_not_a_directory(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "file"
        path.write_text("", encoding="utf-8")

        with pytest.raises(SystemExit):
            Ensure.directory_exists(path)

        assert f"Directory not found: {path}" in capsys.readouterr().err

    def test_custom_message(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            Ensure.directory_exists(tmp_path / "missing", "Project directory is gone")

        assert "Project directory is gone" in capsys.readouterr().err
