"""Configuration package: settings, logging, and exceptions."""

from config.exceptions import (
    CardsmithError,
    TransientProviderError,
    InputError,
    DocumentParseError,
    UnsupportedFileTypeError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
    LLMResponseParseError,
    StorageError,
    StorageTimeoutError,
    MarkerResolutionError,
    BillingError,
    InsufficientCreditsError,
    DatabaseError,
    TaskNotFoundError,
    WorkflowError,
    InvalidTransitionError,
    ValidationError,
    InvalidConfigError,
)
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "CardsmithError",
    "TransientProviderError",
    "InputError",
    "DocumentParseError",
    "UnsupportedFileTypeError",
    "LLMError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMResponseParseError",
    "StorageError",
    "StorageTimeoutError",
    "MarkerResolutionError",
    "BillingError",
    "InsufficientCreditsError",
    "DatabaseError",
    "TaskNotFoundError",
    "WorkflowError",
    "InvalidTransitionError",
    "ValidationError",
    "InvalidConfigError",
]
