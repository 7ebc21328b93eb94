"""Device-management payload specification loader.

Builds the section hierarchy shown by configuration-profile editors from the
vendor's device-management documentation, resolving documents through
memory, persisted cache files, the live documentation endpoint, and built-in
fallbacks.
"""

from __future__ import annotations

from .diagnostics import DiagnosticEvent, DiagnosticsRecorder
from .errors import (
    ConfigValidationError,
    IdentifierResolutionError,
    InvalidSpecStructure,
    MDMSpecError,
    SourceFetchError,
    TierUnavailable,
    TopicProcessingError,
)
from .keys import MAIN_SPEC_NAME, normalize_key
from .logging_utils import setup_logging
from .pipeline import LoadResult, SpecificationLoader

__version__ = "0.1.0"

__all__ = [
    "ConfigValidationError",
    "DiagnosticEvent",
    "DiagnosticsRecorder",
    "IdentifierResolutionError",
    "InvalidSpecStructure",
    "LoadResult",
    "MAIN_SPEC_NAME",
    "MDMSpecError",
    "SourceFetchError",
    "SpecificationLoader",
    "TierUnavailable",
    "TopicProcessingError",
    "normalize_key",
    "setup_logging",
    "__version__",
]
