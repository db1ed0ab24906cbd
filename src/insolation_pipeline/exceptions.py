"""Application exception classes."""


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


class FetchError(Exception):
    """Raised when an image could not be downloaded after all retries."""

    def __init__(self, message: str, *, url: str, attempts: int) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts


class ExtractionError(Exception):
    """Raised when the vision model call fails or returns unusable output."""


class PersistenceError(Exception):
    """Raised when the storage upsert or query fails."""

    def __init__(self, message: str, *, written: int = 0) -> None:
        super().__init__(message)
        self.written = written


class PipelineError(Exception):
    """Raised when a pipeline run cannot produce any result."""


class NoExtractionsError(PipelineError):
    """Raised when not a single image was analyzed successfully."""

    def __init__(
        self,
        message: str,
        *,
        total_images: int = 0,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.total_images = total_images
        self.errors = list(errors or [])


class JournalError(Exception):
    """Raised when writing to journal files fails."""
