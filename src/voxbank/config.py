"""Configuration management for voxbank.

Loads configuration from ~/.config/voxbank/config.toml.
Priority chain: CLI flags > env vars > config file.
"""

import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "voxbank"
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_CONFIG = """\
# voxbank configuration

[tts]
# Provider: "elevenlabs" (cloud) or "system" (espeak / say, offline)
provider = "elevenlabs"

# Voice every announcement is spoken in
# ElevenLabs: use `voxbank voices --provider elevenlabs`
voice = "21m00Tcm4TlvDq8ikWAM"

[vox]
# Silence between words in milliseconds (20-200)
word_gap_ms = 50

# Request limits
max_message_length = 500
max_words = 50
max_word_length = 30

# Provider calls in flight at once, and attempts per word for
# rate limits, timeouts and server errors
concurrency = 3
max_attempts = 1

# "additive": punctuation pauses add to the word gap
# "replace": punctuation pauses stand in for the word gap
pause_mode = "additive"

# Post-processing: "off", "light" or "heavy"
filter = "off"

# Synthesize words missing from the word bank (false skips them)
generate_missing = true

# Spell out numbers ("42" -> "forty two")
expand_numbers = false

# Contractions: "expand" ("don't" -> "do not") or "join" ("don't" -> "dont")
contractions = "expand"

[cache]
# Word bank location (default ~/.cache/voxbank)
# dir = "/var/lib/voxbank"

# Scope isolating this word bank from others sharing the directory
scope = "default"

# API keys are read from environment variables, not this file:
#   ELEVENLABS_API_KEY  - ElevenLabs provider
"""


@dataclass(frozen=True)
class TTSConfig:
    """Synthesis provider configuration."""

    provider: str
    voice: str


@dataclass(frozen=True)
class VoxConfig:
    """Announcement pipeline configuration."""

    word_gap_ms: int = 50
    max_message_length: int = 500
    max_words: int = 50
    max_word_length: int = 30
    concurrency: int = 3
    max_attempts: int = 1
    pause_mode: str = "additive"
    filter: str = "off"
    generate_missing: bool = True
    expand_numbers: bool = False
    contractions: str = "expand"


@dataclass(frozen=True)
class CacheConfig:
    """Word bank configuration."""

    dir: Path | None
    scope: str


@dataclass(frozen=True)
class VoxbankConfig:
    """Top-level voxbank configuration."""

    tts: TTSConfig
    vox: VoxConfig
    cache: CacheConfig


_cached_config: VoxbankConfig | None = None


def generate_config(path: Path | None = None) -> Path:
    """Write the default config file."""
    path = path or CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG)
    return path


def _fail(message: str, path: Path) -> None:
    print(message, file=sys.stderr)
    print(f"Edit {path} or delete it to regenerate.", file=sys.stderr)
    raise SystemExit(1)


def load_config(path: Path | None = None) -> VoxbankConfig:
    """Load configuration from the config file with env var overrides.

    On first run, generates the config file and exits so the user
    can review it before proceeding. The default file is loaded once per
    process; an explicit path is always read fresh.

    Returns:
        Loaded and validated VoxbankConfig.

    Raises:
        SystemExit: If config is missing (after generating) or invalid.
    """
    global _cached_config
    if path is None and _cached_config is not None:
        return _cached_config

    config_path = path or CONFIG_PATH
    if not config_path.exists():
        generated = generate_config(config_path)
        print(
            f"No config found. Generated {generated}, review it and run again.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        _fail(f"Invalid config file: {e}", config_path)

    tts = data.get("tts", {})
    vox = data.get("vox", {})
    cache = data.get("cache", {})

    # Validate required fields
    missing = [
        name
        for section, key, name in (
            (tts, "provider", "tts.provider"),
            (tts, "voice", "tts.voice"),
            (cache, "scope", "cache.scope"),
        )
        if key not in section
    ]
    if missing:
        _fail(f"Missing required config values: {', '.join(missing)}", config_path)

    unknown = set(vox) - set(VoxConfig.__dataclass_fields__)
    if unknown:
        _fail(f"Unknown [vox] settings: {', '.join(sorted(unknown))}", config_path)

    # Env vars override config file values
    cache_dir = os.getenv("VOXBANK_CACHE_DIR", cache.get("dir", ""))
    concurrency = os.getenv("VOXBANK_CONCURRENCY")
    if concurrency is not None:
        try:
            vox = {**vox, "concurrency": int(concurrency)}
        except ValueError:
            _fail(f"VOXBANK_CONCURRENCY must be an integer, got {concurrency!r}", config_path)

    config = VoxbankConfig(
        tts=TTSConfig(
            provider=os.getenv("VOXBANK_PROVIDER", tts["provider"]),
            voice=os.getenv("VOXBANK_VOICE", tts["voice"]),
        ),
        vox=VoxConfig(**vox),
        cache=CacheConfig(
            dir=Path(cache_dir).expanduser() if cache_dir else None,
            scope=os.getenv("VOXBANK_SCOPE", cache["scope"]),
        ),
    )

    if path is None:
        _cached_config = config
    return config
