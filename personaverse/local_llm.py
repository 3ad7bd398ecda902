"""Blocking-HTTP helpers for locally hosted models (Ollama) run off the event loop."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any
from urllib import error, request

DEFAULT_OLLAMA_BASE_URL = "http://127.0.0.1:11434"
_CHAT_ENDPOINT = "/api/chat"
_EMBEDDINGS_ENDPOINT = "/api/embeddings"


class LocalLLMError(RuntimeError):
    """Raised when a local model request fails."""


def post_json(
    url: str,
    payload: dict[str, Any],
    timeout: float,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """POST ``payload`` as JSON and return the decoded JSON body.

    Raises:
        LocalLLMError: On HTTP errors, unreachable servers or non-JSON bodies.
    """

    data = json.dumps(payload).encode("utf-8")
    req = request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json", **(headers or {})},
        method="POST",
    )

    try:
        with request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
        message = body or exc.reason
        raise LocalLLMError(f"Request to {url} failed with status {exc.code}: {message}") from exc
    except error.URLError as exc:
        raise LocalLLMError(f"Could not reach {url}: {exc.reason}") from exc

    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LocalLLMError(f"{url} returned a non-JSON response.") from exc


def _resolve_base(base_url: str | None) -> str:
    return (base_url or os.getenv("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL).rstrip("/")


def _perform_ollama_chat(payload: dict[str, Any], base_url: str, timeout: float) -> str:
    parsed = post_json(f"{base_url}{_CHAT_ENDPOINT}", payload, timeout)
    message = parsed.get("message") or {}
    content = message.get("content")
    if not content:
        raise LocalLLMError("Ollama response did not include assistant content.")
    return content


def _perform_ollama_embeddings(payload: dict[str, Any], base_url: str, timeout: float) -> list[float]:
    parsed = post_json(f"{base_url}{_EMBEDDINGS_ENDPOINT}", payload, timeout)
    embedding = parsed.get("embedding")
    if not embedding:
        raise LocalLLMError("Ollama response did not include an embedding.")
    return [float(value) for value in embedding]


async def call_ollama_chat(
    *,
    user_prompt: str,
    llm_model: str,
    system_prompt: str = "",
    base_url: str | None = None,
    timeout: float = 120.0,
) -> str:
    """Invoke a local Ollama chat model and return the assistant text."""

    system_prompt = system_prompt.strip()
    user_prompt = user_prompt.strip()
    if not user_prompt:
        raise LocalLLMError("Cannot call Ollama with an empty user prompt.")

    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})

    payload = {"model": llm_model, "messages": messages, "stream": False}
    return await asyncio.to_thread(_perform_ollama_chat, payload, _resolve_base(base_url), timeout)


async def call_ollama_embeddings(
    *,
    text: str,
    model: str,
    base_url: str | None = None,
    timeout: float = 60.0,
) -> list[float]:
    """Embed ``text`` with a local Ollama embedding model."""

    payload = {"model": model, "prompt": text}
    return await asyncio.to_thread(_perform_ollama_embeddings, payload, _resolve_base(base_url), timeout)


__all__ = [
    "LocalLLMError",
    "DEFAULT_OLLAMA_BASE_URL",
    "call_ollama_chat",
    "call_ollama_embeddings",
    "post_json",
]
