"""Environment configuration loaded from .env, env vars, or programmatic input."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_PORT = 8888
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama2"
DEFAULT_GENERATION_TIMEOUT = 60.0


def _parse_port(raw: str) -> int:
    """Parse a port string, falling back to the default on empty input."""
    if not raw:
        return DEFAULT_PORT
    try:
        return int(raw)
    except ValueError:
        return -1


def _parse_timeout(raw: str) -> float:
    """Parse a timeout in seconds, falling back to the default on empty input."""
    if not raw:
        return DEFAULT_GENERATION_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        return -1.0


@dataclass
class Config:
    """Relay configuration. Can be built from env, CLI args, or programmatic input."""

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    ollama_url: str = DEFAULT_OLLAMA_URL
    model: str = DEFAULT_MODEL
    generation_timeout: float = DEFAULT_GENERATION_TIMEOUT

    def __post_init__(self):
        """Normalise the backend address so paths can be appended to it."""
        self.ollama_url = self.ollama_url.rstrip("/")

    @classmethod
    def from_env(cls) -> Config:
        """Load config from environment variables and .env file."""
        load_dotenv()
        return cls(
            host=os.getenv("RELAY_HOST", "0.0.0.0"),
            port=_parse_port(os.getenv("RELAY_PORT", "")),
            ollama_url=os.getenv("OLLAMA_URL", "") or DEFAULT_OLLAMA_URL,
            model=os.getenv("OLLAMA_MODEL", "") or DEFAULT_MODEL,
            generation_timeout=_parse_timeout(os.getenv("GENERATION_TIMEOUT", "")),
        )

    @classmethod
    def from_args(
        cls,
        host: str | None = None,
        port: int | None = None,
        ollama_url: str | None = None,
        model: str | None = None,
        generation_timeout: float | None = None,
    ) -> Config:
        """Build config from explicit arguments, falling back to env."""
        env = cls.from_env()
        return cls(
            host=host or env.host,
            port=port if port is not None else env.port,
            ollama_url=ollama_url or env.ollama_url,
            model=model or env.model,
            generation_timeout=(
                generation_timeout
                if generation_timeout is not None
                else env.generation_timeout
            ),
        )

    def validate(self) -> list[str]:
        """Return list of validation errors, empty if config is valid."""
        errors = []
        if not 0 < self.port < 65536:
            errors.append(
                "RELAY_PORT is invalid. "
                "Pass port= or set RELAY_PORT to a number between 1 and 65535."
            )
        if not self.ollama_url.startswith(("http://", "https://")):
            errors.append(
                "OLLAMA_URL must be an http(s) address. "
                "Pass ollama_url= or set OLLAMA_URL in env/.env."
            )
        if not self.model:
            errors.append(
                "OLLAMA_MODEL is not set. "
                "Pass model= or set OLLAMA_MODEL in env/.env."
            )
        if self.generation_timeout <= 0:
            errors.append(
                "GENERATION_TIMEOUT must be a positive number of seconds."
            )
        return errors

    @property
    def websocket_url(self) -> str:
        """Address a local client uses to reach this relay."""
        host = "localhost" if self.host in ("0.0.0.0", "") else self.host
        return f"ws://{host}:{self.port}/"
