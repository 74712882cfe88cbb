"""Connection configuration for the BookStack API.

Reads BookStack connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    BOOKSTACK_URL: BookStack instance URL (required, falls back to WIKI_URL)
    BOOKSTACK_TOKEN_ID: API token id (required, falls back to WIKI_TOKEN_ID)
    BOOKSTACK_TOKEN_SECRET: API token secret (required, falls back to WIKI_TOKEN)
    BOOKSTACK_TIMEOUT: Request timeout in seconds (optional, default: 30)
    BOOKSTACK_VERIFY_SSL: Verify TLS certificates (optional, default: true)
    BOOKSTACK_DEBUG: Enable debug logging (optional, default: false)
    BOOKSTACK_MAX_RETRIES: Retries for 429/5xx responses (optional, default: 3)
    BOOKSTACK_MAX_PARALLEL_REQUESTS: Concurrent page exports during pull
        (optional, default: 1)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass
class Config:
    url: str
    token_id: str
    token_secret: str
    timeout: int = 30
    verify_ssl: bool = True
    debug: bool = False
    max_retries: int = 3
    max_parallel_requests: int = 1


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If URL format is invalid or credentials are empty.
    """
    config.url = config.url.strip()

    if not config.url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid BookStack URL '{config.url}': must start with http:// or https://"
        )

    parsed = urlparse(config.url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid BookStack URL '{config.url}': URL must include a hostname"
        )

    config.url = config.url.removesuffix("/")

    if not config.token_id.strip():
        raise ValueError(
            "BookStack token id cannot be empty. Set BOOKSTACK_TOKEN_ID environment variable."
        )

    if not config.token_secret.strip():
        raise ValueError(
            "BookStack token secret cannot be empty. Set BOOKSTACK_TOKEN_SECRET environment variable."
        )

    if config.timeout < 1:
        raise ValueError(
            f"Invalid timeout {config.timeout}: must be at least 1 second"
        )

    if not config.verify_ssl:
        logger.warning(
            "WARNING: SSL verification disabled (verify_ssl=False). Use only for development."
        )


def _first_env(*keys: str) -> str | None:
    for key in keys:
        val = os.getenv(key)
        if val:
            return val
    return None


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_int_setting(
    env_key: str,
    fb: dict,
    fb_key: str,
    default: int,
    low: int,
    high: int,
) -> int:
    """Resolve an integer field: env > YAML > default, range-checked."""
    raw = os.getenv(env_key)
    source = env_key
    if raw is None:
        if fb_key not in fb:
            return default
        raw = fb[fb_key]
        source = fb_key
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(
            f"Invalid {source} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {source} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    url: str | None = None,
    token_id: str | None = None,
    token_secret: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override BookStack URL.
        token_id: Override API token id.
        token_secret: Override API token secret.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML ``bookstack`` section.
            Used as fallback when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required config (URL, token id, token secret) is
            missing after checking all sources, or a numeric value is
            out of range.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > error ---

    final_url = url or _first_env("BOOKSTACK_URL", "WIKI_URL") or fb.get("url")
    if not final_url:
        raise ValueError(
            "BookStack URL not found. Set BOOKSTACK_URL environment variable, "
            "pass --url CLI argument, or add 'url' to config.yml."
        )

    final_token_id = (
        token_id
        or _first_env("BOOKSTACK_TOKEN_ID", "WIKI_TOKEN_ID")
        or fb.get("token_id")
    )
    if not final_token_id:
        raise ValueError(
            "BookStack token id not found. Set BOOKSTACK_TOKEN_ID environment variable, "
            "pass --token-id CLI argument, or add 'token_id' to config.yml."
        )

    final_token_secret = (
        token_secret
        or _first_env("BOOKSTACK_TOKEN_SECRET", "WIKI_TOKEN")
        or fb.get("token_secret")
    )
    if not final_token_secret:
        raise ValueError(
            "BookStack token secret not found. Set BOOKSTACK_TOKEN_SECRET environment variable, "
            "pass --token-secret CLI argument, or add 'token_secret' to config.yml."
        )

    # --- Boolean fields: CLI > env > YAML > default ---

    if insecure:
        final_verify = False
    else:
        env_verify = _get_bool_env("BOOKSTACK_VERIFY_SSL")
        if env_verify is not None:
            final_verify = env_verify
        else:
            final_verify = bool(fb.get("verify_ssl", True))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("BOOKSTACK_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    config = Config(
        url=final_url.strip(),
        token_id=final_token_id.strip(),
        token_secret=final_token_secret.strip(),
        timeout=_get_int_setting(
            "BOOKSTACK_TIMEOUT", fb, "timeout", 30, 1, 600
        ),
        verify_ssl=final_verify,
        debug=final_debug,
        max_retries=_get_int_setting(
            "BOOKSTACK_MAX_RETRIES", fb, "max_retries", 3, 0, 10
        ),
        max_parallel_requests=_get_int_setting(
            "BOOKSTACK_MAX_PARALLEL_REQUESTS",
            fb,
            "max_parallel_requests",
            1,
            1,
            32,
        ),
    )

    validate_config(config)

    return config
