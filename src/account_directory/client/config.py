"""
Configuration for the directory HTTP client.

Precedence (highest to lowest):

1. Command-line arguments (--server, --timeout)
2. Environment variables (DIRECTORY_SERVER_URL, DIRECTORY_REQUEST_TIMEOUT)
3. Default values

Example:
    config = ClientConfig.from_args(["--server", "http://localhost:8080"])
    print(config.server_url)  # "http://localhost:8080"
    print(config.timeout)     # 5.0 (default)
"""

from __future__ import annotations

import argparse
import os
from collections.abc import Sequence
from dataclasses import dataclass

DEFAULT_SERVER_URL = "http://localhost:8080"

# Every request is bounded by this many seconds.
DEFAULT_TIMEOUT = 5.0

# Largest page size the client will ask for; the server enforces its own.
DEFAULT_MAX_LIMIT = 100

ENV_SERVER_URL = "DIRECTORY_SERVER_URL"
ENV_TIMEOUT = "DIRECTORY_REQUEST_TIMEOUT"


@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable client configuration.

    Attributes:
        server_url: Base URL of the directory API, without trailing slash.
        timeout: Per-request timeout in seconds.
        max_limit: Largest page size accepted by local request validation.
    """

    server_url: str = DEFAULT_SERVER_URL
    timeout: float = DEFAULT_TIMEOUT
    max_limit: int = DEFAULT_MAX_LIMIT

    def __post_init__(self) -> None:
        """
        Raises:
            ValueError: If server_url is empty or timeout/max_limit are not positive.
        """
        if not self.server_url:
            raise ValueError("server_url cannot be empty")
        if self.timeout <= 0:
            raise ValueError("timeout must be a positive number")
        if self.max_limit < 1:
            raise ValueError("max_limit must be at least 1")

    @classmethod
    def from_env(cls) -> ClientConfig:
        return cls.from_args([])

    @classmethod
    def from_args(cls, args: Sequence[str] | None = None) -> ClientConfig:
        """Build a config from command-line arguments, then env, then defaults."""
        parser = argparse.ArgumentParser(prog="account-directory-client", add_help=False)
        parser.add_argument("--server", "-s", dest="server_url", default=None)
        parser.add_argument("--timeout", "-t", type=float, default=None)
        parsed, _ = parser.parse_known_args(args)

        server_url = parsed.server_url or os.environ.get(ENV_SERVER_URL) or DEFAULT_SERVER_URL
        server_url = server_url.rstrip("/")

        if parsed.timeout is not None:
            timeout = parsed.timeout
        elif ENV_TIMEOUT in os.environ:
            timeout = float(os.environ[ENV_TIMEOUT])
        else:
            timeout = DEFAULT_TIMEOUT

        return cls(server_url=server_url, timeout=timeout)
