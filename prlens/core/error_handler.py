"""Turns errors that escaped the remote access layer into user notifications.

The cache and the retry engines never notify anyone; callers hand the final
error to :class:`ErrorReporter`, which picks the title, message, level and
follow-up actions for it and passes them to a :class:`Notifier`.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

from prlens.domain.interfaces.notifier import NotificationAction, Notifier
from prlens.domain.models.errors import APIError, AppError, TemplateError

logger = logging.getLogger(__name__)

TOKEN_DOCS_URL = (
    "https://docs.github.com/en/authentication/keeping-your-account-and-data-secure/"
    "creating-a-personal-access-token"
)
RATE_LIMIT_DOCS_URL = "https://docs.github.com/en/rest/overview/resources-in-the-rest-api#rate-limiting"
TOKEN_SETTINGS_URL = "https://github.com/settings/tokens"
OPENAI_USAGE_URL = "https://platform.openai.com/usage"

RETRY = NotificationAction("Retry", "Run the command again.")
REAUTHENTICATE = NotificationAction("Re-authenticate", "Pass a new token with --token or GITHUB_TOKEN.")
EDIT_TEMPLATE = NotificationAction("Edit Template", "Open the template in the template editor.")


@dataclass(frozen=True)
class Notification:
    title: str
    message: str
    level: str = "error"
    actions: Tuple[NotificationAction, ...] = ()


MessageBuilder = Callable[[AppError], Notification]

# (type, reason) -> notification. Reasons missing here fall back to the type default.
_NOTIFICATIONS: Dict[Tuple[str, str], MessageBuilder] = {
    # --- auth ---
    ("auth", "invalid_token"): lambda e: Notification(
        "Authentication Failed",
        "Your GitHub token is invalid. Please check your token and try again.",
        actions=(REAUTHENTICATE,),
    ),
    ("auth", "expired_token"): lambda e: Notification(
        "Token Expired",
        "Your GitHub token has expired. Please authenticate again.",
        actions=(NotificationAction("Refresh Token", REAUTHENTICATE.hint),),
    ),
    ("auth", "insufficient_permissions"): lambda e: Notification(
        "Insufficient Permissions",
        'Your GitHub token does not have the required permissions. '
        'Please ensure your token has "repo" and "user" scopes.',
        actions=(NotificationAction("Learn More", TOKEN_DOCS_URL, "secondary"),),
    ),
    ("auth", "network_error"): lambda e: Notification(
        "Network Error",
        "Unable to connect to GitHub. Please check your internet connection and try again.",
        actions=(RETRY,),
    ),
    # --- api ---
    ("api", "rate_limit"): lambda e: Notification(
        "Rate Limited",
        f"GitHub API rate limit exceeded. Please wait {_wait_minutes(e)} minutes before trying again.",
        level="warning",
        actions=(NotificationAction("Learn More", RATE_LIMIT_DOCS_URL, "secondary"),),
    ),
    ("api", "not_found"): lambda e: Notification(
        "Resource Not Found",
        "The requested repository or pull request could not be found. "
        "It may have been deleted or you may not have access to it.",
    ),
    ("api", "forbidden"): lambda e: Notification(
        "Access Denied",
        "You do not have permission to access this resource. Please check your GitHub token permissions.",
        actions=(NotificationAction("Check Permissions", TOKEN_SETTINGS_URL, "secondary"),),
    ),
    ("api", "network_error"): lambda e: Notification(
        "Network Error",
        "Unable to connect to GitHub API. Please check your internet connection and try again.",
        actions=(RETRY,),
    ),
    ("api", "server_error"): lambda e: Notification(
        "Server Error",
        "GitHub API is experiencing issues. Please try again in a few minutes.",
        actions=(RETRY,),
    ),
    # --- llm ---
    ("llm", "api_failure"): lambda e: Notification(
        "LLM Service Error",
        "The AI service is currently unavailable. Please try again in a few minutes.",
        actions=(RETRY,),
    ),
    ("llm", "quota_exceeded"): lambda e: Notification(
        "Quota Exceeded",
        "Your AI service quota has been exceeded. Please check your account limits or try again later.",
        actions=(NotificationAction("Check Usage", OPENAI_USAGE_URL, "secondary"),),
    ),
    ("llm", "invalid_response"): lambda e: Notification(
        "Invalid Response",
        "The AI service returned an unexpected response. Please try again.",
        level="warning",
        actions=(RETRY,),
    ),
    ("llm", "timeout"): lambda e: Notification(
        "Request Timeout",
        "The AI service request timed out. This may happen with large code reviews. Please try again.",
        level="warning",
        actions=(RETRY,),
    ),
    ("llm", "configuration_error"): lambda e: Notification(
        "Configuration Error",
        "The AI service is not properly configured. Please check your API key and settings.",
        actions=(NotificationAction("Check Settings", "Set OPENAI_API_KEY or ai.api_key in the config file."),),
    ),
    # --- template ---
    ("template", "invalid_markdown"): lambda e: Notification(
        "Invalid Template",
        "The template contains invalid markdown syntax. Please check the template format.",
        actions=(EDIT_TEMPLATE,),
    ),
    ("template", "missing_file"): lambda e: Notification(
        "Template Not Found",
        "The requested template file could not be found. A default template will be used.",
        level="warning",
        actions=(NotificationAction("Create Default", "A default template will be created."),),
    ),
    ("template", "parsing_error"): lambda e: Notification(
        "Template Parse Error",
        f"Failed to parse template: {_template_details(e)}",
        actions=(EDIT_TEMPLATE,),
    ),
    ("template", "validation_error"): lambda e: Notification(
        "Template Validation Error",
        f"Template validation failed: {_template_details(e)}",
        actions=(NotificationAction("Fix Template", EDIT_TEMPLATE.hint),),
    ),
}

_TYPE_DEFAULTS = {
    "auth": ("Authentication Error", "An authentication error occurred."),
    "api": ("API Error", "An API error occurred."),
    "llm": ("AI Service Error", "An error occurred with the AI service."),
    "template": ("Template Error", "An error occurred with the template."),
}


def _wait_minutes(error: AppError) -> int:
    retry_after = error.retry_after if isinstance(error, APIError) else None
    return math.ceil(retry_after / 60) if retry_after else 60


def _template_details(error: AppError) -> str:
    details = error.details if isinstance(error, TemplateError) else None
    return details or error.message


def build_notification(error: Union[AppError, BaseException]) -> Notification:
    """Chooses the notification for ``error``."""
    if not isinstance(error, AppError):
        report = json.dumps({"message": str(error), "type": type(error).__name__}, indent=2)
        return Notification(
            "Unexpected Error",
            "An unexpected error occurred. Please try again or report the problem if it persists.",
            actions=(NotificationAction("Report Issue", report, "secondary"),),
        )

    builder = _NOTIFICATIONS.get((error.type, error.reason.value))
    if builder is not None:
        return builder(error)
    title, fallback = _TYPE_DEFAULTS.get(error.type, ("Error", "An error occurred."))
    return Notification(title, error.message or fallback)


class ErrorReporter:
    """Logs errors and reports them through a Notifier."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def handle_error(
        self,
        error: BaseException,
        show_notification: bool = True,
        log_error: bool = True,
    ) -> Optional[Notification]:
        """Handles a failure that reached the user-facing layer.

        Returns:
            The notification that was (or would have been) reported, or None
            when notifications are suppressed.
        """
        if log_error:
            if isinstance(error, AppError):
                logger.error(f"Application Error: {error.to_dict()}")
            else:
                logger.error(f"Unexpected error: {error}", exc_info=error)

        if not show_notification:
            return None

        notification = build_notification(error)
        self.notifier.report(notification.title, notification.message, notification.actions, notification.level)
        return notification
