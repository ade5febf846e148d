"""Error types shared by the upstream service clients."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ErrorDetail:
    """Structured error information from a service operation."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


class ServiceError(Exception):
    """Base exception carrying an ErrorDetail."""

    def __init__(self, error: ErrorDetail):
        self.error = error
        super().__init__(error.message)

    @classmethod
    def create(
        cls,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        **kwargs: Any
    ) -> "ServiceError":
        """Build the exception from loose fields."""
        return cls(ErrorDetail(code=code, message=message, details=details or {}), **kwargs)


class UpstreamServiceError(ServiceError):
    """A remote model or index call failed (network, throttling, HTTP error)."""

    def __init__(self, error: ErrorDetail, retryable: bool = False):
        super().__init__(error)
        self.retryable = retryable


class ResponseParseError(ServiceError):
    """A remote call succeeded but returned a payload of unexpected shape."""


class DimensionMismatchError(ServiceError):
    """A vector does not match the dimensionality of the collection."""


class CollectionExistsError(ServiceError):
    """Strict collection creation was attempted on an existing collection."""
