"""Classification of text-generation tool failures.

The orchestrator never lets a tool failure escape: it falls back to
deterministic output. These helpers record why, in terms a user can act on.
"""

import logging
from enum import Enum
from typing import Any, Optional

from scriptflow.core.exceptions import ToolFailure

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of tool failures for user messaging."""

    # User-fixable
    AUTHENTICATION = "authentication"
    QUOTA_LIMIT = "quota_limit"
    MODEL_NOT_FOUND = "model_not_found"

    # Transient
    TIMEOUT = "timeout"
    NETWORK = "network"
    SERVICE_UNAVAILABLE = "service_unavailable"

    # The model answered, but not with something usable
    RESPONSE_FORMAT = "response_format"

    UNKNOWN = "unknown"


class ToolError:
    """Structured description of one tool failure."""

    def __init__(
        self,
        category: ErrorCategory,
        reason: str,
        message: str,
        user_action: str,
        technical_details: Optional[str] = None,
    ):
        self.category = category
        self.reason = reason
        self.message = message
        self.user_action = user_action
        self.technical_details = technical_details

    def format_for_cli(self, verbose: bool = False) -> str:
        lines = [f"Model unavailable, used built-in fallback: {self.message}", f"  {self.user_action}"]
        if verbose and self.technical_details:
            lines.append(f"  Details: {self.technical_details}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "reason": self.reason,
            "message": self.message,
            "user_action": self.user_action,
        }


_PROVIDER_PATTERNS: list[tuple[tuple[str, ...], ErrorCategory, str, str]] = [
    (
        ("api key", "api_key", "unauthorized", "401", "authentication"),
        ErrorCategory.AUTHENTICATION,
        "Model API authentication failed",
        "Configure a key with: llm keys set <provider>",
    ),
    (
        ("rate limit", "429", "quota", "too many requests"),
        ErrorCategory.QUOTA_LIMIT,
        "Model API rate limit or quota exceeded",
        "Wait a few minutes before retrying, or check your plan limits",
    ),
    (
        ("unknown model", "unknownmodelerror", "model not found"),
        ErrorCategory.MODEL_NOT_FOUND,
        "Configured model is not available",
        "Pick an installed model with: scriptflow settings set llm.model <name>",
    ),
    (
        ("overloaded", "503", "service unavailable"),
        ErrorCategory.SERVICE_UNAVAILABLE,
        "Model service is temporarily unavailable",
        "Try again in a few moments",
    ),
    (
        ("connection", "network", "dns", "socket", "unreachable"),
        ErrorCategory.NETWORK,
        "Network connection issue",
        "Check your internet connection and try again",
    ),
]


def classify_tool_failure(exc: Exception, context: Optional[str] = None) -> ToolError:
    """Classify a tool failure into a ``ToolError``.

    Args:
        exc: Usually a ``ToolFailure``; anything else is treated as unreachable
        context: Phase name for logging

    Returns:
        ToolError with category and guidance
    """
    reason = exc.reason if isinstance(exc, ToolFailure) else "unreachable"
    details = str(exc)
    logger.debug(f"Classifying tool failure ({reason}): {details[:200]}", extra={"context": context})

    if reason == "timeout":
        return ToolError(
            ErrorCategory.TIMEOUT,
            reason,
            "Model did not answer in time",
            "Retry, or raise the limit with SCRIPTFLOW_TOOL_TIMEOUT",
            details,
        )
    if reason in ("parse_error", "shape_error", "empty"):
        return ToolError(
            ErrorCategory.RESPONSE_FORMAT,
            reason,
            "Model response was not in the expected format",
            "Retry; a different model may follow the format more reliably",
            details,
        )

    original = exc.original_error if isinstance(exc, ToolFailure) else exc
    searchable = f"{type(original).__name__} {original}".lower() if original else details.lower()
    for terms, category, message, action in _PROVIDER_PATTERNS:
        if any(term in searchable for term in terms):
            return ToolError(category, reason, message, action, details)

    return ToolError(
        ErrorCategory.UNKNOWN,
        reason,
        f"Unexpected model failure{f' during {context}' if context else ''}",
        "Run with --verbose for details",
        details,
    )
