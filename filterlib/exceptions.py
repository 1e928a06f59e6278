"""
Custom exception hierarchy for offset-filter-lab.

Every error carries an optional context dict so that the caller can see the
offending values (order, cutoff, sample rate, file path) without parsing the
message.
"""

from typing import Dict, Any, Optional


class FilterLabError(Exception):
    """Base exception for all offset-filter-lab errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """
        Initialize exception with message and optional context.

        Args:
            message: Human-readable error description
            context: Additional diagnostic information (parameters, paths, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Format exception with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


# Configuration Errors

class ConfigurationError(FilterLabError):
    """Base class for configuration-related errors."""
    pass


class InvalidParameter(ConfigurationError):
    """
    Raised when a design parameter or config value is out of range.

    Order below 1, cutoff outside (0, fs/2), non-positive sample rate.
    """
    pass


# Processing Errors

class ProcessingError(FilterLabError):
    """Base class for signal processing errors."""
    pass


class NumericDegenerate(ProcessingError):
    """
    Raised when a design produces non-finite values.

    Happens when the pre-warp tangent blows up for cutoffs at Nyquist.
    """
    pass


class OffsetEstimationError(ProcessingError):
    """Raised when no spectral peak can be found in the search range."""
    pass


# Audio Errors

class AudioError(FilterLabError):
    """Base class for audio-related errors."""
    pass


class SilentArtifact(AudioError):
    """Raised when the recording carries no usable energy."""
    pass


# Filesystem Errors

class FilesystemError(FilterLabError):
    """Raised when a report or result file cannot be read or written."""
    pass
