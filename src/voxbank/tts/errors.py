"""Custom TTS and VOX pipeline exceptions."""


class TTSError(Exception):
    """Base exception for TTS-related errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error


class TTSAuthError(TTSError):
    """Exception raised for authentication failures.

    This typically occurs when:
    - API key is missing or invalid
    - Account has insufficient credits
    - API key permissions are insufficient
    """

    pass


class TTSAPIError(TTSError):
    """Exception raised when a synthesis provider call fails.

    This typically occurs when:
    - API server is unavailable (5xx errors)
    - Rate limits are exceeded (429 error)
    - Request format is invalid (4xx errors)
    - Network connectivity issues or timeouts
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether repeating the same call could succeed."""
        if self.status_code is None:
            return isinstance(self.original_error, TimeoutError)
        return self.status_code in (408, 429) or self.status_code >= 500


class VoxError(TTSError):
    """Base exception for failures of the VOX announcement pipeline."""

    kind = "vox"


class ValidationError(VoxError):
    """Request text or one of its words was rejected before synthesis."""

    kind = "validation"


class ZeroMatchError(VoxError):
    """No word of the request could be resolved to a clip."""

    kind = "zero_match"


class ConcatenationError(VoxError):
    """A clip could not be assembled into the output buffer.

    Raised for empty clips and clips whose length is not a whole number
    of PCM frames, since either would shift every following byte.
    """

    kind = "concatenation"


class FilterError(VoxError):
    """The effects chain failed; no partially filtered audio is returned."""

    kind = "filter"


class ArchiveError(VoxError):
    """A word bank archive is unreadable or its manifest is malformed."""

    kind = "archive"
