"""Integration tests for CLI commands against a real word bank."""

import asyncio
import io
import os
import subprocess
import sys
from pathlib import Path

import pytest
import soundfile as sf
from typer.testing import CliRunner

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from conftest import WavProvider, seed

import voxbank.config as config_module
from voxbank.cache.manager import WordBankCache
from voxbank.cache.models import CacheKey
from voxbank.cli import app
from voxbank.providers import ProviderRegistry

pytestmark = pytest.mark.integration

# Project root for running tests
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG = """\
[tts]
provider = "fake"
voice = "fake-voice"

[vox]
word_gap_ms = 50

[cache]
scope = "deck"
"""

runner = CliRunner()


@pytest.fixture
def word_bank(isolate_environment: Path, monkeypatch) -> WordBankCache:
    """Config file, fake provider and a seeded word bank in the isolated home."""
    config_path = config_module.CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(CONFIG)
    monkeypatch.setitem(ProviderRegistry._providers, "fake", WavProvider)

    cache = WordBankCache(isolate_environment / "cache")
    asyncio.run(
        seed(cache, {"warning": 0.6, "security": 0.6, "breach": 0.5}, scope_id="deck")
    )
    return cache


def clip_exists(cache: WordBankCache, word: str, scope_id: str = "deck") -> bool:
    key = CacheKey(scope_id=scope_id, word=word, voice_id="fake-voice")
    return asyncio.run(cache.get(key)) is not None


def test_cli_shows_help() -> None:
    """Test that the module entry point runs and lists commands."""
    result = subprocess.run(
        [sys.executable, "-m", "voxbank", "--help"],
        cwd=PROJECT_ROOT,
        env={**os.environ, "PYTHONPATH": "src"},
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0
    assert "Assemble spoken announcements" in result.stdout
    for command in ("say", "preview", "clips", "stats", "purge", "export", "import"):
        assert command in result.stdout


def test_first_run_generates_config(isolate_environment: Path) -> None:
    """Test that the first command writes a config and exits non-zero."""
    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 1
    assert config_module.CONFIG_PATH.exists()
    assert "No config found" in result.output


class TestSay:
    """Test the say command."""

    def test_cached_only_saves_wav(self, word_bank: WordBankCache, tmp_path: Path) -> None:
        """Test assembling a cached announcement into a WAV file."""
        output = tmp_path / "announce.wav"

        result = runner.invoke(
            app, ["say", "Warning security breach", "--cached-only", "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert "Saved 1.80s" in result.output
        info = sf.info(io.BytesIO(output.read_bytes()))
        assert info.samplerate == 48000
        assert info.channels == 2
        assert info.frames == 86400

    def test_cached_only_skips_missing(self, word_bank: WordBankCache, tmp_path: Path) -> None:
        """Test that unknown words are reported and not generated."""
        output = tmp_path / "announce.pcm"

        result = runner.invoke(
            app, ["say", "security alert", "--cached-only", "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert "Skipped: alert" in result.output
        assert output.stat().st_size == 115200
        assert not clip_exists(word_bank, "alert")

    def test_missing_words_generated(self, word_bank: WordBankCache, tmp_path: Path) -> None:
        """Test that the configured provider fills the word bank."""
        output = tmp_path / "announce.pcm"

        result = runner.invoke(app, ["say", "hull breach", "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert clip_exists(word_bank, "hull")
        assert output.stat().st_size == 19200 + 9600 + 96000

    def test_text_from_file(self, word_bank: WordBankCache, tmp_path: Path) -> None:
        """Test reading the announcement from a file."""
        message = tmp_path / "message.txt"
        message.write_text("breach")
        output = tmp_path / "out.pcm"

        result = runner.invoke(
            app, ["say", "-f", str(message), "--cached-only", "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert output.stat().st_size == 96000

    def test_zero_match_fails(self, word_bank: WordBankCache, tmp_path: Path) -> None:
        """Test that an announcement with no available words exits with an error."""
        result = runner.invoke(
            app, ["say", "nothing here", "--cached-only", "-o", str(tmp_path / "x.wav")]
        )

        assert result.exit_code == 1
        assert "Announcement failed (zero_match)" in result.output

    def test_gap_out_of_range(self, word_bank: WordBankCache, tmp_path: Path) -> None:
        """Test that an invalid word gap is a validation failure."""
        result = runner.invoke(
            app,
            ["say", "breach", "--gap", "500", "--cached-only", "-o", str(tmp_path / "x.wav")],
        )

        assert result.exit_code == 1
        assert "validation" in result.output

    def test_unknown_filter(self, word_bank: WordBankCache, tmp_path: Path) -> None:
        """Test that an unknown filter preset is rejected."""
        result = runner.invoke(
            app,
            ["say", "breach", "--filter", "radio", "--cached-only", "-o", str(tmp_path / "x")],
        )

        assert result.exit_code == 1
        assert "Unknown filter preset" in result.output


class TestPreview:
    """Test the preview command."""

    def test_availability_and_duration(self, word_bank: WordBankCache) -> None:
        """Test that preview marks each token and estimates duration."""
        result = runner.invoke(app, ["preview", "Warning. Security alert"])

        assert result.exit_code == 0, result.output
        assert "✓ warning (0.60s)" in result.output
        assert "[_period 200ms]" in result.output
        assert "✗ alert" in result.output
        assert "2 available, 1 missing" in result.output

    def test_invalid_words_listed(self, word_bank: WordBankCache) -> None:
        """Test that invalid words are reported with their reason."""
        result = runner.invoke(app, ["preview", "breach a@b"])

        assert result.exit_code == 0, result.output
        assert "! a@b: contains unsupported characters" in result.output


class TestWordBankCommands:
    """Test clips, stats and purge."""

    def test_clips_lists_scope(self, word_bank: WordBankCache) -> None:
        """Test that clips lists every word in the scope."""
        result = runner.invoke(app, ["clips"])

        assert result.exit_code == 0, result.output
        for word in ("warning", "security", "breach"):
            assert word in result.output
        assert "3 clips" in result.output

    def test_clips_search(self, word_bank: WordBankCache) -> None:
        """Test searching words by substring."""
        result = runner.invoke(app, ["clips", "ch"])

        assert result.exit_code == 0, result.output
        assert "breach" in result.output
        assert "warning" not in result.output

    def test_stats(self, word_bank: WordBankCache) -> None:
        """Test the stats summary."""
        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0, result.output
        assert "=== Word bank: deck ===" in result.output
        assert "Words: 3" in result.output
        assert "Voices: fake-voice" in result.output

    def test_purge_single_word(self, word_bank: WordBankCache) -> None:
        """Test removing one word."""
        result = runner.invoke(app, ["purge", "Breach"])

        assert result.exit_code == 0, result.output
        assert "Removed 1 clips" in result.output
        assert not clip_exists(word_bank, "breach")
        assert clip_exists(word_bank, "warning")

    def test_purge_scope_confirmed(self, word_bank: WordBankCache) -> None:
        """Test that purging a scope asks first and --yes skips the prompt."""
        declined = runner.invoke(app, ["purge"], input="n\n")
        assert declined.exit_code == 1
        assert clip_exists(word_bank, "warning")

        result = runner.invoke(app, ["purge", "-y"])

        assert result.exit_code == 0, result.output
        assert "Removed 3 clips" in result.output
        assert not clip_exists(word_bank, "warning")


class TestArchiveCommands:
    """Test export and import through the CLI."""

    def test_export_then_import_into_other_scope(
        self, word_bank: WordBankCache, tmp_path: Path
    ) -> None:
        """Test moving a word bank between scopes through an archive."""
        archive = tmp_path / "bank.zip"

        exported = runner.invoke(app, ["export", str(archive)])
        imported = runner.invoke(app, ["import", str(archive), "-s", "bridge"])

        assert exported.exit_code == 0, exported.output
        assert imported.exit_code == 0, imported.output
        assert "Imported 3 clips into bridge (0 overwritten, 0 rejected)" in imported.output
        assert clip_exists(word_bank, "security", scope_id="bridge")

    def test_import_broken_archive(self, word_bank: WordBankCache, tmp_path: Path) -> None:
        """Test that a non-archive file fails cleanly."""
        archive = tmp_path / "bank.zip"
        archive.write_bytes(b"not a zip")

        result = runner.invoke(app, ["import", str(archive)])

        assert result.exit_code == 1
        assert "Import failed" in result.output
