"""
The cognition oracle: one retrying combinator around a language model.

Every model-backed decision in the engine goes through ``Oracle.query``:
- build the prompt (optionally wrapped in the ``{"output": ...}`` JSON contract)
- call the provider (mirascope for hosted providers, Ollama REST for local models)
- parse, validate and clean the answer
- retry failed attempts with tenacity; after the budget, answer ``fail_safe``

The oracle never raises to its caller. Tests replace the transport by
subclassing and overriding ``complete``.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional, TypeVar

from mirascope import llm
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from personaverse.config import Config
from personaverse.errors import OracleError, OracleResponseError, OracleUnavailableError
from personaverse.local_llm import LocalLLMError, call_ollama_chat
from personaverse.logging_utils import debug_llm_enabled, log_error


T = TypeVar("T")
Validator = Callable[[Any], bool]
Cleanup = Callable[[Any], Any]


class OracleEnvelope(BaseModel):
    """The JSON object structured answers must contain."""

    output: Any


def build_structured_prompt(prompt: str, example_output: Any, special_instruction: str = "") -> str:
    """Wrap ``prompt`` in the quoted-prompt / example-json contract."""
    full_prompt = '"""\n' + prompt + '\n"""\n'
    full_prompt += f"Output the response to the prompt above in json. {special_instruction}\n"
    full_prompt += "Example output json:\n"
    full_prompt += '{"output": "' + str(example_output) + '"}'
    return full_prompt


def parse_structured_output(raw: str) -> Any:
    """Extract ``output`` from a model answer, ignoring anything after the last ``}``.

    Raises:
        OracleResponseError: If no JSON object with an ``output`` key can be read.
    """
    text = raw.strip()
    end_index = text.rfind("}") + 1
    if end_index == 0:
        raise OracleResponseError("Response contained no JSON object")
    candidate = text[:end_index]
    start_index = candidate.find("{")
    if start_index > 0:
        candidate = candidate[start_index:]
    try:
        return OracleEnvelope.model_validate_json(candidate).output
    except ValidationError as exc:
        raise OracleResponseError(f"Response did not match the output contract: {exc}") from exc


def _accept_all(_: Any) -> bool:
    return True


def _identity(value: Any) -> Any:
    return value


class Oracle:
    """Language-model gateway shared by every persona in a simulation.

    Args:
        provider: ``openai``, ``anthropic`` or any mirascope provider; ``ollama`` for local models
        model: Model identifier passed to the provider
        retry_budget: Default number of attempts per query
        timeout: Seconds before a single call is abandoned (counts as a failed attempt)
        base_url: Ollama server override
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        *,
        retry_budget: Optional[int] = None,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self.provider = (provider or Config.LLM_PROVIDER).lower()
        self.model = model or Config.LLM_MODEL
        self.retry_budget = retry_budget or Config.ORACLE_RETRY_BUDGET
        self.timeout = timeout or Config.LLM_TIMEOUT_SECONDS
        self.base_url = base_url or Config.OLLAMA_BASE_URL
        self._remote_invoke: Optional[Callable[[str], Any]] = None

    # ========================================================================
    # Transport
    # ========================================================================

    def _remote(self) -> Callable[[str], Any]:
        if self._remote_invoke is None:
            @llm.call(provider=self.provider, model=self.model)
            async def _invoke(prompt: str) -> str:
                return prompt

            self._remote_invoke = _invoke
        return self._remote_invoke

    async def complete(self, prompt: str) -> str:
        """Send one prompt and return the raw text answer.

        Raises:
            OracleUnavailableError: On provider errors, local server errors or timeouts.
        """
        try:
            if self.provider == "ollama":
                return await asyncio.wait_for(
                    call_ollama_chat(
                        user_prompt=prompt,
                        llm_model=self.model,
                        base_url=self.base_url,
                        timeout=self.timeout,
                    ),
                    timeout=self.timeout,
                )
            response = await asyncio.wait_for(self._remote()(prompt), timeout=self.timeout)
            return response.content
        except asyncio.TimeoutError as exc:
            raise OracleUnavailableError(f"Oracle call timed out after {int(self.timeout)}s") from exc
        except LocalLLMError as exc:
            raise OracleUnavailableError(f"Local LLM provider error ({self.provider}): {exc}") from exc
        except Exception as exc:
            # Provider SDKs raise their own exception types.
            raise OracleUnavailableError(f"Provider error ({self.provider}): {exc}") from exc

    # ========================================================================
    # Queries
    # ========================================================================

    async def query(
        self,
        prompt: str,
        *,
        validator: Optional[Validator] = None,
        cleanup: Optional[Cleanup] = None,
        fail_safe: Any = None,
        retry_budget: Optional[int] = None,
        example_output: Any = None,
        special_instruction: str = "",
        structured: bool = True,
        label: str = "oracle query",
    ) -> Any:
        """Ask the model, retrying until an answer validates.

        Parameters
        ----------
        prompt:
            Rendered prompt text.
        validator:
            Predicate on the parsed answer; a falsy result or an exception fails the attempt.
        cleanup:
            Turns a valid answer into the returned value; an exception fails the attempt.
        fail_safe:
            Returned once ``retry_budget`` attempts have failed.
        structured:
            Wrap the prompt in the ``{"output": ...}`` contract and parse it back out.

        Returns
        -------
        The cleaned answer, or ``fail_safe``.
        """
        validator = validator or _accept_all
        cleanup = cleanup or _identity
        budget = max(1, retry_budget or self.retry_budget)
        full_prompt = (
            build_structured_prompt(prompt, example_output, special_instruction) if structured else prompt
        )

        if debug_llm_enabled():
            print(f"\n{'='*80}")
            print(f"[ORACLE PROMPT] {label}")
            print(f"{'-'*80}")
            print(full_prompt)
            print(f"{'='*80}\n")

        attempt_number = 0
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(OracleError),
                stop=stop_after_attempt(budget),
                reraise=True,
            ):
                with attempt:
                    attempt_number += 1
                    raw = await self.complete(full_prompt)
                    if debug_llm_enabled():
                        print(f"[ORACLE RESPONSE] {label} (attempt {attempt_number}/{budget})")
                        print(raw)
                    value = parse_structured_output(raw) if structured else raw.strip()
                    try:
                        valid = validator(value)
                    except Exception as exc:
                        raise OracleResponseError(f"Validator rejected answer: {exc}") from exc
                    if not valid:
                        raise OracleResponseError(f"Validator rejected answer: {value!r}")
                    try:
                        return cleanup(value)
                    except Exception as exc:
                        raise OracleResponseError(f"Cleanup failed: {exc}") from exc
        except OracleError as exc:
            log_error(f"Fail-safe triggered for {label} after {attempt_number} attempt(s): {exc}")
            return fail_safe

        # AsyncRetrying with reraise=True always exits via return or raise.
        raise RuntimeError("Oracle retry mechanism exited unexpectedly")

    async def single_request(self, prompt: str, *, fail_safe: str = "", label: str = "single request") -> str:
        """One unstructured attempt; ``fail_safe`` if the provider fails."""
        return await self.query(
            prompt,
            validator=lambda value: bool(value),
            fail_safe=fail_safe,
            retry_budget=1,
            structured=False,
            label=label,
        )


__all__ = [
    "Oracle",
    "OracleEnvelope",
    "build_structured_prompt",
    "parse_structured_output",
]
