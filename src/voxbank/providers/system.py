"""Offline provider backed by the operating system's speech engine.

Uses espeak on Linux and say on macOS. Output is WAV, which the decoder
resamples to the system PCM format. Quality is robotic, but it needs no
network and no credentials, which makes it useful for seeding a word bank
during development.
"""

import asyncio
import logging
import platform
import shutil
import tempfile
from pathlib import Path

from ..tts.errors import TTSAPIError
from .base import TTSProvider

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "default"


async def _run(*cmd: str) -> bytes:
    """Run a command, returning stdout or raising TTSAPIError on failure."""
    proc = await asyncio.create_subprocess_exec(
        *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise
    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip()
        raise TTSAPIError(f"{cmd[0]} failed with code {proc.returncode}: {detail}")
    return stdout


class SystemTTSProvider(TTSProvider):
    """espeak / say provider."""

    name = "system"

    def __init__(self) -> None:
        """Detect the platform speech command.

        Raises:
            RuntimeError: If the platform is unsupported or its engine is not installed
        """
        self.platform = platform.system()
        if self.platform == "Linux":
            self.command = "espeak"
        elif self.platform == "Darwin":
            self.command = "say"
        else:
            raise RuntimeError(f"Unsupported platform for system TTS: {self.platform}")

        if shutil.which(self.command) is None:
            hint = ""
            if self.command == "espeak":
                hint = " Install it with: sudo apt-get install espeak"
            raise RuntimeError(f"{self.command} not found.{hint}")

        logger.warning(
            "Using system TTS - clips will sound robotic compared to AI voices. "
            "Set ELEVENLABS_API_KEY and use --provider=elevenlabs for production word banks"
        )

    async def synthesize(self, text: str, voice: str | None = None) -> bytes:
        """Speak text into a temporary WAV file and return its bytes.

        Raises:
            TTSAPIError: If the speech command fails
        """
        use_voice = voice if voice and voice != DEFAULT_VOICE else None

        with tempfile.TemporaryDirectory(prefix="voxbank-") as temp_dir:
            output_path = Path(temp_dir) / "clip.wav"

            if self.command == "espeak":
                cmd = ["espeak", "-w", str(output_path)]
                if use_voice:
                    cmd.extend(["-v", use_voice])
                await _run(*cmd, text)
            else:
                # say writes WAV when given a data format and a .wav file name
                cmd = [
                    "say",
                    "--file-format=WAVE",
                    "--data-format=LEI16@48000",
                    "-o",
                    str(output_path),
                ]
                if use_voice:
                    cmd.extend(["-v", use_voice])
                await _run(*cmd, text)

            audio_data = output_path.read_bytes()

        logger.debug(f"System TTS synthesized '{text}': {len(audio_data)} bytes")
        return audio_data

    async def list_voices(self) -> list[dict]:
        """List installed engine voices, always including the default voice."""
        voices = [{"id": DEFAULT_VOICE, "name": "Default System Voice", "provider": self.name}]

        try:
            if self.command == "espeak":
                output = await _run("espeak", "--voices")
                # Columns: Pty Language Age/Gender VoiceName File Other; skip the header
                for line in output.decode(errors="replace").splitlines()[1:]:
                    parts = line.split()
                    if len(parts) >= 4:
                        voices.append({"id": parts[1], "name": parts[3], "provider": self.name})
            else:
                output = await _run("say", "-v", "?")
                for line in output.decode(errors="replace").splitlines():
                    name = line.split("  ")[0].strip()
                    if name:
                        voices.append({"id": name, "name": name, "provider": self.name})
        except TTSAPIError as e:
            logger.error(f"Failed to list system voices: {e}")

        return voices
