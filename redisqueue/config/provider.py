"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from ..exceptions import ConfigurationError


@dataclass
class QueueConfig:
    """Redis connection settings for a queue."""
    host: str = "127.0.0.1"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def connection_options(self) -> Dict[str, Any]:
        """Keyword arguments for redis.asyncio.Redis beyond host and port."""
        options = {"db": self.db}
        if self.password:
            options["password"] = self.password
        options.update(self.options)
        return options


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_queue_config(self) -> QueueConfig:
        """Get queue connection configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_queue_config(self) -> QueueConfig:
        """Get queue connection configuration from environment variables."""
        # Kubernetes service links expose REDIS_PORT as tcp://host:port
        port_env = os.getenv("REDIS_PORT", "6379")
        if port_env.startswith("tcp://"):
            port_env = port_env.split(":")[-1]

        return QueueConfig(
            host=os.getenv("REDIS_HOST", "127.0.0.1"),
            port=_parse_int("REDIS_PORT", port_env),
            db=_parse_int("REDIS_DB", os.getenv("REDIS_DB", "0")),
            password=os.getenv("REDIS_PASSWORD") or None,
        )


def _parse_int(key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(
            f"{key} must be an integer", config_key=key, config_value=value
        )
