"""
Text embeddings for memory retrieval.

Nodes are embedded once, when they are stored; the vector lives in the
persona's associative memory under the node's ``embedding_key``. Focal points
for retrieval reuse those stored vectors when the text matches.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, List, Optional, Protocol

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from personaverse.config import Config
from personaverse.local_llm import LocalLLMError, call_ollama_embeddings, post_json

if TYPE_CHECKING:
    from personaverse.persona import Persona


BLANK_TEXT = "this is blank"
EMBEDDING_ATTEMPTS = 3


def prepare_text(text: str) -> str:
    """Normalise text before embedding: newlines become spaces, empty text becomes a placeholder."""
    text = (text or "").replace("\n", " ")
    return text if text.strip() else BLANK_TEXT


class Embedder(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


async def _with_retries(call) -> List[float]:
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(LocalLLMError),
        stop=stop_after_attempt(EMBEDDING_ATTEMPTS),
        reraise=True,
    ):
        with attempt:
            return await call()
    raise RuntimeError("Embedding retry mechanism exited unexpectedly")


class OllamaEmbedder:
    """Embeddings from a local Ollama server (``/api/embeddings``)."""

    def __init__(self, model: Optional[str] = None, base_url: Optional[str] = None):
        self.model = model or Config.EMBEDDING_MODEL
        self.base_url = base_url or Config.OLLAMA_BASE_URL

    async def embed(self, text: str) -> List[float]:
        prompt = prepare_text(text)
        return await _with_retries(
            lambda: call_ollama_embeddings(text=prompt, model=self.model, base_url=self.base_url)
        )


class OpenAIEmbedder:
    """Embeddings from an OpenAI-compatible ``/v1/embeddings`` endpoint."""

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
    ):
        self.model = model or Config.EMBEDDING_MODEL
        self.base_url = (base_url or Config.EMBEDDING_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else Config.OPENAI_API_KEY
        self.timeout = timeout

    def _request(self, text: str) -> List[float]:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        parsed = post_json(
            f"{self.base_url}/v1/embeddings",
            {"model": self.model, "input": [text]},
            self.timeout,
            headers=headers,
        )
        try:
            return [float(value) for value in parsed["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError) as exc:
            raise LocalLLMError("Embedding response did not include data[0].embedding") from exc

    async def embed(self, text: str) -> List[float]:
        prompt = prepare_text(text)
        return await _with_retries(lambda: asyncio.to_thread(self._request, prompt))


def build_embedder() -> Embedder:
    """Construct the embedder selected by ``EMBEDDING_PROVIDER``."""
    provider = Config.EMBEDDING_PROVIDER.lower()
    if provider == "ollama":
        return OllamaEmbedder()
    if provider == "openai":
        return OpenAIEmbedder()
    raise ValueError(f"Unknown EMBEDDING_PROVIDER {Config.EMBEDDING_PROVIDER!r}")


async def get_or_embed(persona: "Persona", text: str) -> List[float]:
    """Return the stored vector for ``text`` or embed it with the persona's embedder."""
    stored = persona.a_mem.embeddings.get(text)
    if stored:
        return stored
    return await persona.embedder.embed(text)


__all__ = [
    "BLANK_TEXT",
    "Embedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
    "build_embedder",
    "get_or_embed",
    "prepare_text",
]
