"""Provider voice settings."""

from dataclasses import asdict, dataclass


@dataclass
class VoiceSettings:
    """ElevenLabs voice generation settings for single-word clips.

    Word clips are played back to back, so the defaults favor a steady,
    neutral delivery over expressiveness.

    Args:
        stability: Voice stability (0.0-1.0)
        similarity_boost: Voice similarity boost (0.0-1.0)
        style: Voice style exaggeration (0.0-1.0)
        use_speaker_boost: Whether to use speaker boost
        speed: Speaking rate (0.7-1.2)
    """

    stability: float = 0.75
    similarity_boost: float = 0.75
    style: float = 0.0
    use_speaker_boost: bool = True
    speed: float = 1.0

    def __post_init__(self) -> None:
        """Validate voice settings."""
        if not 0.0 <= self.stability <= 1.0:
            raise ValueError("stability must be between 0.0 and 1.0")
        if not 0.0 <= self.similarity_boost <= 1.0:
            raise ValueError("similarity_boost must be between 0.0 and 1.0")
        if not 0.0 <= self.style <= 1.0:
            raise ValueError("style must be between 0.0 and 1.0")
        if not 0.7 <= self.speed <= 1.2:
            raise ValueError("speed must be between 0.7 and 1.2")

    def to_dict(self) -> dict:
        return asdict(self)
