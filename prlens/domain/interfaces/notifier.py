"""Interface for user-facing notifications.

Callers report errors that escaped the remote access layer through this
port; the cache and retry engines never call it themselves.
"""

import abc
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class NotificationAction:
    """An affordance offered alongside a notification (retry, re-authenticate, ...)."""
    label: str
    hint: str = ""
    style: str = "primary"  # 'primary', 'secondary' or 'danger'


class Notifier(abc.ABC):
    """Abstract Base Class for notification sinks."""

    @abc.abstractmethod
    def report(
        self,
        title: str,
        message: str,
        actions: Sequence[NotificationAction] = (),
        level: str = "error",
    ) -> None:
        """Surfaces a notification to the user.

        Args:
            title: Short headline.
            message: Explanation shown to the user.
            actions: Follow-up affordances.
            level: 'success', 'info', 'warning' or 'error'.
        """
        pass
