"""Relaychat — WebSocket chat relay with LLM-suggested replies.

Library API::

    from relaychat import RelayChat

    relay = RelayChat(port=8888, model="llama2")
    relay.run()
"""

from __future__ import annotations

import logging

from relaychat.api.app import create_api, run_server
from relaychat.config import Config

__all__ = ["RelayChat", "Config"]


class RelayChat:
    """High-level API for running the relay as a library.

    Args:
        port: Port to listen on. Defaults to ``RELAY_PORT`` or 8888.
        ollama_url: Address of the Ollama backend used for suggestions.
        model: Model name used for suggestions.
        generation_timeout: Seconds to wait for a suggestion response.
        host: Interface to bind.
    """

    def __init__(
        self,
        port: int | None = None,
        ollama_url: str | None = None,
        model: str | None = None,
        generation_timeout: float | None = None,
        host: str | None = None,
    ):
        self.config = Config.from_args(
            host=host,
            port=port,
            ollama_url=ollama_url,
            model=model,
            generation_timeout=generation_timeout,
        )

    def create_app(self):
        """Build the FastAPI app without starting a server."""
        return create_api(self.config)

    def run(self) -> None:
        """Start the relay (blocking)."""
        logging.basicConfig(
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            level=logging.INFO,
        )
        logging.getLogger("httpx").setLevel(logging.WARNING)

        errors = self.config.validate()
        if errors:
            raise ValueError("; ".join(errors))

        run_server(self.create_app(), host=self.config.host, port=self.config.port)
