# project_service/errors.py
from __future__ import annotations

from typing import List, Optional, Sequence


class ProjectServiceError(Exception):
    """Base class; carries the HTTP status the error handlers render."""

    status_code: int = 500

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class ValidationError(ProjectServiceError):
    """Bad request shape. Raised before any mutation."""

    status_code = 400


class NotFoundError(ProjectServiceError):
    status_code = 404


class MalformedPayloadError(ProjectServiceError):
    """A service's values.yaml could not be parsed."""

    status_code = 400


class SequenceError(ProjectServiceError):
    """The revision counter could not hand out a new number."""


class PersistenceError(ProjectServiceError):
    pass


class RuleSetSaveError(PersistenceError):
    """
    Services were reparsed and persisted, but storing the new match rules on the
    project failed afterwards. The reparsed revisions are not rolled back.
    """


class ServiceUnavailableError(ProjectServiceError):
    status_code = 503

    def __init__(self, message: str, *, service: str, status: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message, detail=detail)
        self.service = service
        self.status = status


class AggregateError(ProjectServiceError):
    """Every failure collected by one fan-out pass."""

    def __init__(self, errors: Sequence[BaseException]):
        self.errors: List[BaseException] = list(errors)
        noun = "error" if len(self.errors) == 1 else "errors"
        super().__init__(f"{len(self.errors)} {noun} occurred")

    def __str__(self) -> str:
        lines = [f"{self.message}:"]
        lines.extend(f"\t* {e}" for e in self.errors)
        return "\n".join(lines)

    @property
    def status_code(self) -> int:  # type: ignore[override]
        codes = {getattr(e, "status_code", 500) for e in self.errors}
        return codes.pop() if len(codes) == 1 else 500
