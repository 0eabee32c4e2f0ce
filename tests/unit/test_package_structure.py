"""Test package structure and imports."""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

SRC = str(Path(__file__).parent.parent.parent / "src")


def test_package_imports() -> None:
    """Test that voxbank package can be imported."""
    import voxbank

    assert voxbank.__version__ == "0.1.0"


def test_main_module_imports() -> None:
    """Test that main module can be imported without error."""
    from voxbank.__main__ import main

    assert callable(main)


def test_unknown_package_attribute() -> None:
    """Test that unknown attributes raise AttributeError."""
    import voxbank

    with pytest.raises(AttributeError):
        voxbank.speak  # noqa: B018


def test_tts_lazy_exports() -> None:
    """Test that pipeline classes resolve through the tts package."""
    from voxbank import tts
    from voxbank.tts.pipeline import VoxPipeline

    assert tts.VoxPipeline is VoxPipeline
    assert "VoxPipeline" in tts.__all__


def test_audio_player_lazy_export() -> None:
    """Test that AudioPlayer resolves through the audio package."""
    from voxbank import audio
    from voxbank.audio.player import AudioPlayer

    assert audio.AudioPlayer is AudioPlayer


def test_headless_import_skips_pygame() -> None:
    """Test that importing the library API does not load pygame."""
    code = "import sys, voxbank.api, voxbank.tts.pipeline; print('pygame' in sys.modules)"
    output = subprocess.run(
        [sys.executable, "-c", code],
        capture_output=True,
        text=True,
        check=True,
        env={**os.environ, "PYTHONPATH": SRC},
    ).stdout

    assert output.strip() == "False"
