"""Configuration management for the ZhipuAI client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import httpx
import yaml
from dotenv import load_dotenv

from .auth import split_api_key
from .exceptions import ConfigurationError

DEFAULT_BASE_URL = "https://open.bigmodel.cn/api/paas/v3/model-api/"
DEFAULT_EMPTY_MESSAGES_LIMIT = 300
API_KEY_ENV = "ZHIPUAI_API_KEY"


@dataclass(frozen=True)
class ClientConfig:
    """Immutable client configuration.

    Exactly one credential source must be given: a preissued ``auth_token``
    sent as-is, or an ``api_key`` from which a token valid for ``token_ttl``
    is minted per request.
    """
    base_url: str = DEFAULT_BASE_URL
    auth_token: str | None = None
    api_key: str | None = field(default=None, repr=False)
    token_ttl: timedelta = timedelta(minutes=30)

    # Streaming
    empty_messages_limit: int = DEFAULT_EMPTY_MESSAGES_LIMIT

    # Connection settings
    max_connections: int = 100
    max_keepalive: int = 20
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    write_timeout: float = 10.0
    pool_timeout: float = 10.0

    # Optional caller-owned transport; left open by the client
    http_client: httpx.AsyncClient | None = field(
        default=None, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if (self.auth_token is None) == (self.api_key is None):
            raise ConfigurationError(
                "Exactly one of auth_token or api_key must be configured"
            )
        if self.api_key is not None:
            split_api_key(self.api_key)
        if self.empty_messages_limit < 0:
            raise ConfigurationError("empty_messages_limit must not be negative")
        if self.token_ttl <= timedelta(0):
            raise ConfigurationError("token_ttl must be positive")

    def build_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.write_timeout,
            pool=self.pool_timeout,
        )

    def build_limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_keepalive,
        )


def default_config(auth_token: str) -> ClientConfig:
    """Configuration for the public endpoint with a preissued token."""
    return ClientConfig(base_url=DEFAULT_BASE_URL, auth_token=auth_token)


class Configuration:
    """Manages configuration and environment variables for the client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self._config = self._load_yaml_config(config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str | None) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if config_path is None:
            config_path = os.path.join(os.path.dirname(__file__), "config.yaml")
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ConfigurationError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def api_key(self) -> str:
        """Get the ZhipuAI API key.

        Raises:
            ConfigurationError: If the key is not set in the environment.
        """
        api_key = os.getenv(API_KEY_ENV)
        if not api_key:
            raise ConfigurationError(
                f"API key '{API_KEY_ENV}' not found in environment variables"
            )
        return api_key

    def get_client_config(self) -> ClientConfig:
        """Build the client configuration from the ``client`` section.

        Returns:
            ClientConfig using the API key from the environment.

        Raises:
            ConfigurationError: If a required parameter is missing or invalid.
        """
        client_config = self._config.get("client", {})

        required_keys = [
            "base_url", "token_ttl_seconds", "empty_messages_limit",
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout",
            "max_connections", "max_keepalive",
        ]
        for key in required_keys:
            if key not in client_config:
                raise ConfigurationError(
                    f"client.{key} must be explicitly configured in config.yaml"
                )

        ttl_seconds = client_config["token_ttl_seconds"]
        if ttl_seconds <= 0:
            raise ConfigurationError("client.token_ttl_seconds must be positive")
        if client_config["max_connections"] < 1:
            raise ConfigurationError("client.max_connections must be at least 1")

        return ClientConfig(
            base_url=client_config["base_url"],
            api_key=self.api_key,
            token_ttl=timedelta(seconds=ttl_seconds),
            empty_messages_limit=client_config["empty_messages_limit"],
            max_connections=client_config["max_connections"],
            max_keepalive=client_config["max_keepalive"],
            connect_timeout=client_config["connect_timeout"],
            read_timeout=client_config["read_timeout"],
            write_timeout=client_config["write_timeout"],
            pool_timeout=client_config["pool_timeout"],
        )
