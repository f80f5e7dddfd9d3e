"""Main entry point for the prlens application.

Sets up the Typer CLI application, performs dependency injection (Composition
Root), defines CLI commands, and delegates execution to the GitHubService.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import typer
from typing_extensions import Annotated

# --- Core Layer ---
from prlens.core.error_handler import ErrorReporter
from prlens.core.services.github_service import GitHubService
# --- Domain Layer ---
from prlens.domain.models.errors import AppError
# --- Infrastructure Layer ---
from prlens.infrastructure.cache.request_cache import RequestCache
from prlens.infrastructure.cli.display import ConsoleDisplay
from prlens.infrastructure.config.settings import (
    get_cache_settings, get_cache_ttls, get_config, get_github_retry_policy, get_github_token,
    get_http_timeout, get_page_size, load_configuration,
)
from prlens.infrastructure.github.http_accessor import HttpxGitHubAccessor
from prlens.infrastructure.monitoring.logger_setup import setup_logging
from prlens.infrastructure.resilience.github_retry import GitHubRetryService

logger = logging.getLogger(__name__)

# --- Dependency Injection Container (Manual) ---

def create_dependencies(verbose: bool = False, ui: Optional[ConsoleDisplay] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one command run.

    This acts as the Composition Root. Every run gets a fresh cache: the
    cache lives exactly as long as the credentials it was filled with.
    """
    load_configuration()
    setup_logging(log_level=logging.DEBUG if verbose else get_config('logging.level'),
                  log_file=get_config('logging.file'))

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ui or ConsoleDisplay()
    dependencies['cache'] = RequestCache(**get_cache_settings())
    dependencies['accessor'] = HttpxGitHubAccessor(timeout=get_http_timeout())
    dependencies['retry_service'] = GitHubRetryService(policy=get_github_retry_policy())
    dependencies['github_service'] = GitHubService(
        accessor=dependencies['accessor'],
        cache=dependencies['cache'],
        retry_service=dependencies['retry_service'],
        page_size=get_page_size(),
        ttls=get_cache_ttls(),
    )
    logger.debug("All dependencies initialized successfully.")
    return dependencies


Action = Callable[[GitHubService, ConsoleDisplay], Awaitable[None]]


def run_command(token: Optional[str], verbose: bool, action: Action) -> None:
    """Authenticates, runs ``action`` and turns failures into notifications."""
    # Built first so that configuration errors can be reported too.
    ui = ConsoleDisplay()
    error_reporter = ErrorReporter(notifier=ui)

    try:
        dependencies = create_dependencies(verbose, ui=ui)
        service: GitHubService = dependencies['github_service']

        async def _run() -> None:
            async with dependencies['accessor']:
                await service.authenticate(token or get_github_token() or "")
                await action(service, ui)

        asyncio.run(_run())
    except AppError as e:
        error_reporter.handle_error(e, log_error=verbose)
        raise typer.Exit(code=1)
    except Exception as e:
        error_reporter.handle_error(e)
        raise typer.Exit(code=1)


# --- Typer App Definition ---
app = typer.Typer(
    name="prlens",
    help="prlens: browse GitHub pull requests through a cached, rate-limit-aware client.",
    add_completion=False,
)

TokenOption = Annotated[
    Optional[str],
    typer.Option("--token", "-t", help="GitHub personal access token. Defaults to GITHUB_TOKEN."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


@app.command()
def user(token: TokenOption = None, verbose: VerboseOption = False):
    """Show the account the token belongs to."""
    async def action(service: GitHubService, ui: ConsoleDisplay) -> None:
        ui.display_user(service.get_user())

    run_command(token, verbose, action)


@app.command()
def repos(token: TokenOption = None, verbose: VerboseOption = False):
    """List repositories visible to the token, most recently updated first."""
    async def action(service: GitHubService, ui: ConsoleDisplay) -> None:
        ui.display_repositories(await service.get_repositories())

    run_command(token, verbose, action)


@app.command()
def pulls(
    repo: Annotated[str, typer.Argument(help='Repository as "owner/name".')],
    token: TokenOption = None,
    verbose: VerboseOption = False,
):
    """List open pull requests of a repository."""
    async def action(service: GitHubService, ui: ConsoleDisplay) -> None:
        ui.display_pull_requests(repo, await service.get_pull_requests(repo))

    run_command(token, verbose, action)


@app.command()
def diff(
    repo: Annotated[str, typer.Argument(help='Repository as "owner/name".')],
    number: Annotated[int, typer.Argument(help="Pull request number.")],
    token: TokenOption = None,
    verbose: VerboseOption = False,
):
    """Print the diff of a pull request."""
    async def action(service: GitHubService, ui: ConsoleDisplay) -> None:
        ui.display_diff(await service.get_pull_request_diff(repo, number))

    run_command(token, verbose, action)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
