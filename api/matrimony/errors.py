import uuid


class MatchingError(Exception):
    """Base for errors surfaced to callers of the matching endpoints."""

    kind = "matching_error"
    status_code = 500

    def __init__(self, message: str = ""):
        self.message = message or self.kind.replace("_", " ")
        self.trace_id = str(uuid.uuid4())
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message, "traceId": self.trace_id}


class NotFoundError(MatchingError):
    kind = "not_found"
    status_code = 404


class ValidationError(MatchingError):
    kind = "validation_error"
    status_code = 400


class PartialDataError(MatchingError):
    """Some candidates or fields could not be fetched. Never raised to HTTP callers;
    it is recorded per skipped candidate and surfaced as the page's ``partial`` flag."""

    kind = "partial_data"
    status_code = 200

    def __init__(self, message: str = "", user_id: str | None = None):
        self.user_id = user_id
        super().__init__(message)


class InternalError(MatchingError):
    kind = "internal_error"
    status_code = 500


class DeadlineExceededError(InternalError):
    kind = "deadline_exceeded"
    status_code = 504


class RepositoryError(Exception):
    """Raised by profile repositories on infrastructure failures (timeouts, lost connections)."""
