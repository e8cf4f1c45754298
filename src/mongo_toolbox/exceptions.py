"""Custom exceptions for the Mongo Toolbox."""

from __future__ import annotations


class ToolboxError(Exception):
    """Base exception for Mongo Toolbox."""

    pass


class ConfigurationError(ToolboxError):
    """Raised when configuration is missing or invalid."""

    pass


class InvalidArgumentError(ToolboxError, ValueError):
    """Raised when an operation is called with malformed input."""

    pass


class UnsupportedTypeError(InvalidArgumentError):
    """Raised when a field type name has no known zero-value."""

    pass
