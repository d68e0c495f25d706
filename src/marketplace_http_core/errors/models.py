"""Classification models shared by the response classifier and the retry layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of failure categories a call can end in."""

    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    RETRYABLE = "retryable"
    GENERIC = "generic"


@dataclass(frozen=True)
class ErrorClassification:
    """Outcome of classifying a failed response or transport failure.

    Attributes:
        kind: The error category.
        message: Human-readable summary used as the exception message.
        status_code: HTTP status, or None for transport-level failures.
        metadata: Kind-specific extras (``retry_after``, ``resource``,
            ``auth_type``, ``body_excerpt``, ``failure``...).
    """

    kind: ErrorKind
    message: str
    status_code: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_retryable(self) -> bool:
        return self.kind is ErrorKind.RETRYABLE
