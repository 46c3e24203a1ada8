"""Custom exception hierarchy for the flashcard generation pipeline."""

from typing import Optional


class CardsmithError(Exception):
    """Base exception for all cardsmith errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class TransientProviderError(CardsmithError):
    """Timeout or throttling from an upstream provider; eligible for step retries."""


# ---- Input Errors ----

class InputError(CardsmithError):
    """Bad or missing source content, unreadable file, or failed URL fetch."""


class DocumentParseError(InputError):
    """Uploaded document is empty, corrupt, or has no readable text."""

    def __init__(self, message: str = "Document contains no readable text content", filename: str = ""):
        details = {"filename": filename} if filename else {}
        super().__init__(message, details)
        self.filename = filename


class UnsupportedFileTypeError(InputError):
    """File extension is not one of the supported document formats."""

    def __init__(self, filename: str):
        super().__init__(f"Unsupported file type: {filename}", {"filename": filename})
        self.filename = filename


# ---- LLM Errors ----

class LLMError(CardsmithError):
    """Base exception for LLM API errors."""


class LLMRateLimitError(LLMError, TransientProviderError):
    """LLM API rate limit exceeded."""

    def __init__(self, message: str = "API rate limit exceeded", retry_after: Optional[float] = None):
        details = {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message, details)
        self.retry_after = retry_after


class LLMTimeoutError(LLMError, TransientProviderError):
    """LLM API request timed out."""


class LLMResponseParseError(LLMError):
    """LLM returned non-JSON or a structurally invalid payload."""

    def __init__(self, message: str = "Failed to parse LLM response", raw_response: str = ""):
        details = {"raw_response": raw_response[:200]} if raw_response else {}
        super().__init__(message, details)
        self.raw_response = raw_response


# ---- Storage Errors ----

class StorageError(CardsmithError):
    """Object storage or remote fetch failed."""


class StorageTimeoutError(StorageError, TransientProviderError):
    """Storage or remote fetch timed out."""


# ---- Outline Errors ----

class MarkerResolutionError(CardsmithError):
    """A chapter start marker could not be located in the source text."""

    def __init__(self, marker: str):
        super().__init__("Chapter start marker not found", {"marker": marker[:50]})
        self.marker = marker


# ---- Billing Errors ----

class BillingError(CardsmithError):
    """Base exception for credit accounting errors."""


class InsufficientCreditsError(BillingError):
    """User balance does not cover the requested debit."""

    def __init__(self, required: float, available: float):
        super().__init__(
            "Insufficient credits",
            {"required": required, "available": available},
        )
        self.required = required
        self.available = available


# ---- Database Errors ----

class DatabaseError(CardsmithError):
    """Database operation failed."""


class TaskNotFoundError(DatabaseError):
    """Generation task does not exist."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}", {"task_id": task_id})
        self.task_id = task_id


# ---- Workflow Errors ----

class WorkflowError(CardsmithError):
    """Base exception for workflow orchestration errors."""


class InvalidTransitionError(WorkflowError):
    """Requested status change is not allowed from the task's current status."""

    def __init__(self, task_id: str, current: str, target: str):
        super().__init__(
            f"Cannot move task from {current} to {target}",
            {"task_id": task_id, "current": current, "target": target},
        )
        self.current = current
        self.target = target


# ---- Validation Errors ----

class ValidationError(CardsmithError):
    """Input validation failed."""


class InvalidConfigError(ValidationError):
    """Configuration value is invalid."""
