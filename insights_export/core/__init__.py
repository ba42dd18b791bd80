"""Core abstractions and interfaces for the insights export module."""

from insights_export.core.exceptions import (
    ExportError,
    AuthenticationError,
    APIError,
    ConfigurationError,
    DataValidationError,
    SheetWriteError,
    PipelineError,
)

__all__ = [
    "ExportError",
    "AuthenticationError",
    "APIError",
    "ConfigurationError",
    "DataValidationError",
    "SheetWriteError",
    "PipelineError",
]
