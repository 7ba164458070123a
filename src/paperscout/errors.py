"""Error types and the typed provider result used at every external call.

Provider clients never raise from their public methods. Each operation has a
``*_result`` variant returning a :class:`ProviderResult`, so callers that need
to tell "no results" apart from "provider failed" can inspect ``.error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class PaperscoutError(Exception):
    """Base class for all paperscout errors."""


class ProviderError(PaperscoutError):
    """An external bibliographic provider call failed."""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class TransportError(ProviderError):
    """Provider unreachable, timed out, or returned a non-success status."""


class RateLimitError(ProviderError):
    """Provider answered HTTP 429."""


class ParseError(ProviderError):
    """Provider response body could not be decoded."""


class NotFoundError(ProviderError):
    """Provider has no record for the requested identifier."""


class StorageUnavailableError(PaperscoutError):
    """The storage backend could not be reached or failed a query."""


class LLMError(PaperscoutError):
    """Text completion failed or returned unusable output."""


@dataclass
class ProviderResult(Generic[T]):
    """Outcome of one provider call: a value, or the error that replaced it."""

    value: Optional[T] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value, or ``default`` when the call failed or produced nothing."""
        if self.error is not None or self.value is None:
            return default
        return self.value

    @classmethod
    def success(cls, value: T) -> ProviderResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ProviderError) -> ProviderResult[T]:
        return cls(error=error)


class PaperNotFoundError(PaperscoutError):
    """Neither storage nor any provider knows the requested paper."""
