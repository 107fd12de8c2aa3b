"""CLI context management for Web API connections and shared state."""

from dataclasses import dataclass

from lookupscope.core.client import WebApiClient
from lookupscope.core.config import ClientConfig


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Holds connection settings and output preferences; each command opens its
    own client for the duration of one event loop run.
    """

    base_url: str | None
    token: str | None
    json_output: bool
    verbose: bool = False

    def get_config(self) -> ClientConfig:
        """Resolve connection settings (CLI option, then environment, then default)."""
        return ClientConfig.from_env(url=self.base_url, token=self.token)

    def create_client(self) -> WebApiClient:
        """Create a Web API client for one command run."""
        return WebApiClient(self.get_config())
