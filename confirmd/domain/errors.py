"""Error taxonomy for the verification pipeline."""

from typing import Optional


class ConfirmdError(Exception):
    """Base class for all pipeline errors."""


class ValidationFailure(ConfirmdError):
    """Input rejected locally; never persisted."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class DuplicateContentError(ValidationFailure):
    """An item with the same content fingerprint already exists."""


class NotFoundError(ConfirmdError):
    """Referenced entity does not exist."""


class TransientExternalError(ConfirmdError):
    """External collaborator failed; the unit of work is skipped."""


class ContentFetchError(TransientExternalError):
    """A URL could not be retrieved."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FeedFetchError(TransientExternalError):
    """A feed could not be fetched or parsed."""


class ModelProviderError(TransientExternalError):
    """Language model unavailable or returned a malformed response."""


class SearchProviderError(TransientExternalError):
    """Web search failed."""


class FatalPipelineError(ConfirmdError):
    """Aborts the current run."""


class StorageUnavailableError(FatalPipelineError):
    """The storage collaborator cannot be reached."""


class ConfigurationError(FatalPipelineError):
    """A required collaborator is missing its configuration."""
