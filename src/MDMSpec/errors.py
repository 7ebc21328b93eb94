"""Exception hierarchy shared by the section builder and the cache resolver.

Only :class:`InvalidSpecStructure` ever reaches callers of the public API.
The remaining errors describe recoverable failures: the builder skips the
offending topic or identifier, the resolver falls through to the next tier,
and the configuration store keeps the previous value. They are still raised
internally so each recovery site can log a precise reason.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "MDMSpecError",
    "InvalidSpecStructure",
    "TopicProcessingError",
    "IdentifierResolutionError",
    "TierUnavailable",
    "SourceFetchError",
    "ConfigValidationError",
]


class MDMSpecError(RuntimeError):
    """Base exception for specification parsing and document resolution."""


class InvalidSpecStructure(MDMSpecError):
    """Raised when a specification document is not a sequence of topic records."""


class TopicProcessingError(MDMSpecError):
    """Raised when a single topic record cannot be turned into sections."""

    def __init__(self, message: str, *, position: Optional[int] = None) -> None:
        super().__init__(message)
        self.position = position


class IdentifierResolutionError(MDMSpecError):
    """Raised when a cross-reference identifier does not name a configuration type."""

    def __init__(self, message: str, *, reference: object = None) -> None:
        super().__init__(message)
        self.reference = reference


class TierUnavailable(MDMSpecError):
    """Raised when one cache tier cannot produce the requested document."""

    def __init__(self, tier: str, name: str, reason: str) -> None:
        super().__init__(f"{tier} tier unavailable for {name}: {reason}")
        self.tier = tier
        self.name = name
        self.reason = reason


class SourceFetchError(TierUnavailable):
    """Raised when the network source fails to return a usable JSON document."""

    def __init__(
        self,
        name: str,
        reason: str,
        *,
        status_code: Optional[int] = None,
        retryable: bool = True,
        attempts: int = 1,
    ) -> None:
        super().__init__("network", name, reason)
        self.status_code = status_code
        self.retryable = retryable
        self.attempts = attempts


class ConfigValidationError(MDMSpecError):
    """Raised when a configuration value fails validation."""

    def __init__(self, key: str, value: object, reason: str) -> None:
        super().__init__(f"invalid value for {key}: {value!r} ({reason})")
        self.key = key
        self.value = value
        self.reason = reason
