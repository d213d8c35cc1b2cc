"""Error taxonomy for the suggestion engine.

Only MalformedInputError is meant to propagate to callers; it marks a caller
bug. The others are caught at a boundary and converted into state:

- DetectionFailed travels on DetectionResponse.error and DetectionState.error.
- PersistenceCorruptError is logged while loading session state, which then
  resets to empty.
- AiExtractionError / AiUnavailableError become an AiNotice so the heuristic
  suggestions keep working.
"""


class LoreSuggestError(Exception):
    """Base class for engine errors."""


class MalformedInputError(LoreSuggestError, TypeError):
    """Detection input was neither a string nor a sequence of content blocks."""


class DetectionFailed(LoreSuggestError):
    """The pattern detector raised while handling a request."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PersistenceCorruptError(LoreSuggestError):
    """Persisted session state could not be read back."""


class AiExtractionError(LoreSuggestError):
    """The AI extraction collaborator failed (network, HTTP status or payload)."""


class AiUnavailableError(AiExtractionError):
    """AI features are not enabled for the requesting member or team."""
