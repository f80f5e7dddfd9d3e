"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables and a YAML
configuration file (~/.prlens/config.yaml). Dotted keys such as
``cache.max_size`` map to the environment variable ``PRLENS_CACHE_MAX_SIZE``
and to nested mappings in the YAML file.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from prlens.infrastructure.cache.cache_keys import CacheTTL
from prlens.infrastructure.resilience.github_retry import GitHubRetryPolicy
from prlens.infrastructure.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".prlens"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "PRLENS_"

DEFAULT_CACHE_MAX_SIZE = 200
DEFAULT_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_PAGE_SIZE = 100
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file (DEFAULT_CONFIG_FILE if None).
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_file = config_file or DEFAULT_CONFIG_FILE

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False keeps real environment variables on top
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    _loaded = True


def reset_configuration() -> None:
    """Forgets loaded values so the next load_configuration() reads again."""
    global _config, _loaded
    _config = {}
    _loaded = False


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _env_names(key: str):
    yield ENV_PREFIX + key.upper().replace('.', '_')
    if '.' not in key:
        yield key.upper()


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return value


def _lookup_yaml(key: str) -> Any:
    if key in _config:
        return _config[key]
    node: Any = _config
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable
    3. YAML config
    4. Default value
    """
    if key in _test_config:
        return _test_config[key]

    for env_key in _env_names(key):
        if env_key in os.environ:
            return _coerce(os.environ[env_key])

    value = _lookup_yaml(key)
    if value is not None:
        return value

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Set configuration values that override every other source."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# --- Convenience Functions ---

def get_github_token() -> Optional[str]:
    """GITHUB_TOKEN from the environment, or github.token from the config file."""
    token = get_config('GITHUB_TOKEN') or get_config('github.token')
    return str(token) if token else None


def get_cache_settings() -> Dict[str, Any]:
    """Constructor arguments for the request cache."""
    return {
        'max_size': int(get_config('cache.max_size', DEFAULT_CACHE_MAX_SIZE)),
        'ttl': float(get_config('cache.default_ttl', DEFAULT_CACHE_TTL_SECONDS)),
    }


def get_cache_ttls() -> CacheTTL:
    defaults = CacheTTL()
    return CacheTTL(
        user=float(get_config('cache.ttl.user', defaults.user)),
        repositories=float(get_config('cache.ttl.repositories', defaults.repositories)),
        pull_requests=float(get_config('cache.ttl.pull_requests', defaults.pull_requests)),
        pull_request_diff=float(get_config('cache.ttl.pull_request_diff', defaults.pull_request_diff)),
    )


def get_retry_policy() -> RetryPolicy:
    """Generic retry policy (AI service calls and other non-GitHub work)."""
    defaults = RetryPolicy()
    return RetryPolicy(
        max_retries=int(get_config('retry.max_retries', defaults.max_retries)),
        base_delay=float(get_config('retry.base_delay', defaults.base_delay)),
        max_delay=float(get_config('retry.max_delay', defaults.max_delay)),
        backoff_factor=float(get_config('retry.backoff_factor', defaults.backoff_factor)),
    )


def get_github_retry_policy() -> GitHubRetryPolicy:
    defaults = GitHubRetryPolicy()
    max_delay = get_config('github.max_delay', defaults.max_delay)
    return GitHubRetryPolicy(
        max_retries=int(get_config('github.max_retries', defaults.max_retries)),
        base_delay=float(get_config('github.base_delay', defaults.base_delay)),
        max_delay=None if max_delay in (None, '', 'none', 'None') else float(max_delay),
    )


def get_page_size() -> int:
    return int(get_config('github.page_size', DEFAULT_PAGE_SIZE))


def get_http_timeout() -> float:
    return float(get_config('github.timeout', DEFAULT_HTTP_TIMEOUT_SECONDS))
