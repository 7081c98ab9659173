"""Exception hierarchy for review ingestion and merge gating."""


class MergeGateError(Exception):
    """Base class for errors surfaced to callers.

    Each subclass carries a machine-readable ``kind`` alongside the
    human-readable message.
    """

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "detail": self.message}


class NotFoundError(MergeGateError):
    """A referenced pull request, review, comment or merge status is absent."""

    kind = "not_found"


class ConflictError(MergeGateError):
    """A state transition was attempted on a comment that is already terminal."""

    kind = "conflict"


class ReviewValidationError(MergeGateError):
    """Input failed validation (malformed analysis, missing dismissal note)."""

    kind = "validation_error"


class UpstreamAnalysisError(ReviewValidationError):
    """The analysis payload returned by the model is structurally invalid."""


class UpstreamError(MergeGateError):
    """The model call or the storage layer failed after retries."""

    kind = "upstream_error"
