"""Runtime settings for portsentinel."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from portsentinel.archive import DEFAULT_SWEEP_INTERVAL, DEFAULT_TTL
from portsentinel.manager import DEFAULT_SHUTDOWN_GRACE
from portsentinel.shell import DEFAULT_TIMEOUT


@dataclass(slots=True, frozen=True)
class Settings:
    """Settings shared by the HTTP and terminal front ends."""

    host: str = "0.0.0.0"
    port: int = 3001
    host_agent_url: str | None = None  # Forward /api/* here when set
    archive_ttl: float = DEFAULT_TTL
    sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    command_timeout: float = DEFAULT_TIMEOUT
    shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE
    log_level: str = "INFO"

    @property
    def forwarding(self) -> bool:
        """Whether requests are relayed to a companion agent."""
        return bool(self.host_agent_url)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Reads PORT, HOST, HOST_AGENT_URL and the PORTSENTINEL_* variables.
        Unset variables keep their defaults.

        Raises:
            ValueError: A numeric variable does not parse.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def number(name: str, default: float) -> float:
            raw = env.get(name)
            if raw is None or raw == "":
                return default
            try:
                value = float(raw)
            except ValueError:
                raise ValueError(f"{name} must be a number, got {raw!r}") from None
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {raw!r}")
            return value

        return cls(
            host=env.get("HOST", defaults.host),
            port=int(number("PORT", defaults.port)),
            host_agent_url=env.get("HOST_AGENT_URL") or None,
            archive_ttl=number("PORTSENTINEL_ARCHIVE_TTL", defaults.archive_ttl),
            sweep_interval=number("PORTSENTINEL_SWEEP_INTERVAL", defaults.sweep_interval),
            command_timeout=number("PORTSENTINEL_COMMAND_TIMEOUT", defaults.command_timeout),
            shutdown_grace=number("PORTSENTINEL_SHUTDOWN_GRACE", defaults.shutdown_grace),
            log_level=env.get("PORTSENTINEL_LOG_LEVEL", defaults.log_level).upper(),
        )
