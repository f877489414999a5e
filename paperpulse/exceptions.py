"""Exception hierarchy.

Failures are scoped to one paper or one request; nothing here is meant to
bring the process down.

* ``ExternalServiceError`` – an adapter call did not produce a usable answer.
  Adapters turn these into degraded outcomes, except the structured
  extractor whose failure marks the paper as failed for the run.
* ``ValidationError`` – bad client input (identifiers, cursors, watchlists).
  Rejected immediately, never retried.
* ``ConfigError`` – invalid settings files.
"""

from typing import Optional


class PaperPulseError(Exception):
    """Base class for all paperpulse errors."""


class ConfigError(PaperPulseError):
    """Raised when configuration values are invalid."""


# ---------------------------------------------------------------------------
# External sources
# ---------------------------------------------------------------------------

class ExternalServiceError(PaperPulseError):
    """An external source failed to answer."""

    def __init__(self, source: str, message: str, status: Optional[int] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status = status


class TransientServiceError(ExternalServiceError):
    """Network error, timeout, 429 or 5xx that survived all retries."""


class PermanentServiceError(ExternalServiceError):
    """Non-retryable 4xx or a malformed response payload."""


class ExtractionError(PaperPulseError):
    """The structured-extraction call failed; the paper fails for this run."""


# ---------------------------------------------------------------------------
# Client input
# ---------------------------------------------------------------------------

class ValidationError(PaperPulseError):
    """Client-facing input error."""


class InvalidIdentifierError(ValidationError):
    """A paper identifier could not be parsed."""


class InvalidCursorError(ValidationError):
    """A pagination cursor could not be parsed."""


class WatchlistValidationError(ValidationError):
    """A watchlist payload violates its shape constraints."""
