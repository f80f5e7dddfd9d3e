import logging
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.box import ROUNDED
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from prlens.domain.interfaces.notifier import NotificationAction, Notifier

logger = logging.getLogger(__name__)

LEVEL_STYLES = {
    "success": "green",
    "info": "blue",
    "warning": "yellow",
    "error": "red",
}


class ConsoleDisplay(Notifier):
    """Console output and notifications rendered with the rich library."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self.console = console or Console()

    def report(
        self,
        title: str,
        message: str,
        actions: Sequence[NotificationAction] = (),
        level: str = "error",
    ) -> None:
        """Renders a notification as a panel coloured by level, with action hints below the message."""
        style = LEVEL_STYLES.get(level, "red")
        body = escape(message)
        if actions:
            hints = "\n".join(
                f"[bold]{escape(action.label)}[/bold]" + (f": {escape(action.hint)}" if action.hint else "")
                for action in actions
            )
            body = f"{body}\n\n{hints}"
        logger.debug(f"report called: level={level}, title={title}, actions={len(actions)}")
        self.console.print(
            Panel(body, title=f"[bold {style}]{escape(title)}[/bold {style}]", title_align="left",
                  border_style=style, box=ROUNDED, padding=(0, 1))
        )

    def display_info(self, message: str) -> None:
        self.console.print(f"[blue]Info:[/blue] {message}")

    def display_user(self, user: Dict[str, Any]) -> None:
        login = escape(user.get("login") or "<unknown>")
        name = escape(user.get("name") or "")
        self.console.print(f"[bold green]{login}[/bold green] {name}".rstrip())

    def display_repositories(self, repos: List[Dict[str, Any]]) -> None:
        table = Table(title=f"Repositories ({len(repos)})", box=ROUNDED)
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Visibility")
        table.add_column("Updated", style="dim")
        for repo in repos:
            visibility = "private" if repo.get("private") else "public"
            table.add_row(escape(repo.get("full_name") or ""), visibility, escape(str(repo.get("updated_at") or "")))
        self.console.print(table)

    def display_pull_requests(self, repo: str, pulls: List[Dict[str, Any]]) -> None:
        table = Table(title=f"Open pull requests in {escape(repo)} ({len(pulls)})", box=ROUNDED)
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Title")
        table.add_column("Author", style="green")
        for pull in pulls:
            author = (pull.get("user") or {}).get("login") or ""
            table.add_row(str(pull.get("number", "")), escape(pull.get("title") or ""), escape(author))
        self.console.print(table)

    def display_diff(self, diff: str) -> None:
        self.console.print(Syntax(diff, "diff", word_wrap=True))
