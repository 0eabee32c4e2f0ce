"""Unit tests for CLI logic functions."""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest
import typer

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from voxbank.cli import _fail, _read_text


class TestReadText:
    """Test text source priority: argument, file, then stdin."""

    def test_argument_wins(self, tmp_path: Path) -> None:
        """Test that the argument is used even when a file is given."""
        path = tmp_path / "message.txt"
        path.write_text("from file")

        assert _read_text("from argument", path, debug=False) == "from argument"

    def test_empty_argument_kept(self) -> None:
        """Test that an empty argument is passed through for the pipeline to reject."""
        assert _read_text("", None, debug=False) == ""

    def test_file_read(self, tmp_path: Path) -> None:
        """Test reading the announcement from a file."""
        path = tmp_path / "message.txt"
        path.write_text("Warning. Security breach\n")

        assert _read_text(None, path, debug=False) == "Warning. Security breach\n"

    def test_missing_file_exits(self, tmp_path: Path, capsys) -> None:
        """Test that an unreadable file exits with an error message."""
        with pytest.raises(typer.Exit):
            _read_text(None, tmp_path / "absent.txt", debug=False)

        assert "Unable to read" in capsys.readouterr().err

    def test_stdin_used_when_piped(self) -> None:
        """Test that piped stdin is read and stripped."""
        with patch("voxbank.cli.sys.stdin") as mock_stdin:
            mock_stdin.isatty.return_value = False
            mock_stdin.read.return_value = "all clear\n"

            assert _read_text(None, None, debug=False) == "all clear"

    def test_no_text_exits(self, capsys) -> None:
        """Test that an interactive terminal with no text exits."""
        with patch("voxbank.cli.sys.stdin") as mock_stdin:
            mock_stdin.isatty.return_value = True

            with pytest.raises(typer.Exit):
                _read_text(None, None, debug=False)

        assert "No text provided" in capsys.readouterr().err


class TestFail:
    """Test error reporting in normal and debug mode."""

    def test_plain_message(self, capsys) -> None:
        """Test that normal mode shows the error text."""
        with pytest.raises(typer.Exit) as exc_info:
            _fail(False, "Export failed", OSError("disk full"))

        assert exc_info.value.exit_code == 1
        assert capsys.readouterr().err == "Error: Export failed: disk full\n"

    def test_debug_message_shows_repr(self, capsys) -> None:
        """Test that debug mode shows the exception type."""
        with pytest.raises(typer.Exit):
            _fail(True, "Export failed", OSError("disk full"))

        assert "Debug - Export failed: OSError('disk full')" in capsys.readouterr().err
