"""Ollama text-generation adapter used to produce reply suggestions."""

from __future__ import annotations

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

_PROMPT_TEMPLATE = (
    'A person named "{sender}" said to me "{content}". '
    "Numerically list 3 extremely brief responses."
)


class GenerationError(Exception):
    """The text-generation backend did not produce a response."""


class GenerationUnavailable(GenerationError):
    """Backend unreachable or answered with an error status."""


class GenerationTimeout(GenerationError):
    """Backend did not answer within the configured timeout."""


def build_prompt(sender: str, content: str) -> str:
    """Build the suggestion prompt for a message from *sender*."""
    return _PROMPT_TEMPLATE.format(sender=sender, content=content)


class OllamaGenerator:
    """Single-shot completion client for an Ollama ``/api/generate`` endpoint.

    Any text the backend returns counts as success; checking its shape is
    left to :mod:`relaychat.suggestions`.

    Args:
        base_url: Backend address, e.g. ``http://localhost:11434``.
        model: Model name to request.
        timeout: Wall-clock seconds allowed for the whole request. httpx only
            bounds each connect/read/write phase, so a backend trickling
            bytes is cut off here instead.
        client: Optional preconfigured ``httpx.AsyncClient`` (used in tests).
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def generate(self, prompt: str) -> str:
        """Send *prompt* to the backend and return the raw completion text."""
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        try:
            resp = await asyncio.wait_for(
                self._client.post(
                    f"{self.base_url}/api/generate",
                    json=payload,
                    timeout=self.timeout,
                ),
                self.timeout,
            )
            resp.raise_for_status()
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise GenerationTimeout(
                f"no response from {self.base_url} within {self.timeout:g}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise GenerationUnavailable(
                f"backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise GenerationUnavailable(f"backend unreachable: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationUnavailable("backend returned non-JSON body") from e

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            text = ""
        logger.debug(
            "Generated %d chars with %s: %r",
            len(text),
            self.model,
            text[:100] + ("..." if len(text) > 100 else ""),
        )
        return text

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
