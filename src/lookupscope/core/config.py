"""Client configuration resolved from arguments and environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

ENV_URL = "LOOKUPSCOPE_URL"
ENV_TOKEN = "LOOKUPSCOPE_TOKEN"
ENV_API_VERSION = "LOOKUPSCOPE_API_VERSION"
ENV_TIMEOUT = "LOOKUPSCOPE_TIMEOUT"
ENV_PAGE_TABLE = "LOOKUPSCOPE_PAGE_TABLE"
ENV_TARGET_TABLE = "LOOKUPSCOPE_TARGET_TABLE"

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_API_VERSION = "9.2"
DEFAULT_TIMEOUT = 30.0


def get_base_url(url: str | None = None) -> str:
    """Resolve the Web API base URL.

    Priority:
    1. Explicit URL argument
    2. LOOKUPSCOPE_URL environment variable
    3. Default: the local dev-server proxy (http://localhost:3000)
    """
    if url:
        return url.rstrip("/")
    if env_url := os.getenv(ENV_URL):
        return env_url.rstrip("/")
    return DEFAULT_BASE_URL


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got '{raw}'") from None


@dataclass
class ClientConfig:
    """Connection settings for the Web API.

    The timeout is applied by the HTTP client only; the discovery engine
    itself never times out or cancels a request.
    """

    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_TIMEOUT
    token: str | None = None
    max_concurrent: int = 3
    min_delay: float = 0.05
    extra_headers: dict[str, str] = field(default_factory=dict)

    @property
    def api_root(self) -> str:
        """Root URL of the versioned data API."""
        return f"{self.base_url.rstrip('/')}/api/data/v{self.api_version}"

    @classmethod
    def from_env(
        cls,
        url: str | None = None,
        token: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
    ) -> ClientConfig:
        """Build a config, filling unset values from the environment.

        Args:
            url: Explicit base URL (overrides LOOKUPSCOPE_URL)
            token: Explicit bearer token (overrides LOOKUPSCOPE_TOKEN)
            api_version: Explicit API version (overrides LOOKUPSCOPE_API_VERSION)
            timeout: Explicit timeout in seconds (overrides LOOKUPSCOPE_TIMEOUT)

        Raises:
            ValueError: If LOOKUPSCOPE_TIMEOUT is not a number
        """
        return cls(
            base_url=get_base_url(url),
            api_version=api_version or os.getenv(ENV_API_VERSION) or DEFAULT_API_VERSION,
            timeout=timeout if timeout is not None else _env_float(ENV_TIMEOUT, DEFAULT_TIMEOUT),
            token=token or os.getenv(ENV_TOKEN) or None,
        )
