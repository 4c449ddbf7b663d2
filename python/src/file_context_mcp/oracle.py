"""
Decision oracle for the reasoning loop.

The loop only depends on the narrow DecisionOracle protocol:

    decide(system_prompt, user_prompt, output_shape) -> Decision

OpenAIDecisionOracle implements it against any OpenAI-compatible chat API
(OpenRouter by default) using JSON-schema structured output.

Retry policy lives here, not in the loop:
- Exponential backoff with jitter for rate limits, 5xx and connection errors
- Per-request timeout protection
- Non-retryable errors and shape mismatches fail immediately
"""

import asyncio
import json
import logging
import random
import re
from typing import Any, Protocol

import httpx
import openai
from openai import AsyncOpenAI

from .config import FileContextConfig
from .errors import DecisionInvalid, GenerationFailed
from .models import Decision
from .profiling import profile_latency_async

logger = logging.getLogger(__name__)


INITIAL_RETRY_DELAY = 1.0  # Initial delay for exponential backoff
RETRYABLE_ERRORS = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
    asyncio.TimeoutError,
)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```\s*$", re.DOTALL)


class DecisionOracle(Protocol):
    """Anything that can turn a prompt into a reasoning Decision."""

    async def decide(
        self,
        system_prompt: str,
        user_prompt: str,
        output_shape: dict[str, Any],
    ) -> Decision:
        ...


def parse_json_payload(content: str) -> Any:
    """Parse a model response as JSON, tolerating a surrounding code fence."""
    text = content.strip()
    fenced = _FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DecisionInvalid(f"Failed to parse structured output: {e}") from e


class OpenAIDecisionOracle:
    """
    DecisionOracle backed by an OpenAI-compatible chat completions API.

    Features:
    - AsyncOpenAI over a pooled httpx client
    - JSON-schema constrained output
    - Exponential backoff retry for transient failures
    """

    def __init__(
        self,
        config: FileContextConfig | None = None,
        client: Any = None,
        retry_delay: float = INITIAL_RETRY_DELAY,
    ):
        self.config = config or FileContextConfig()
        self.retry_delay = retry_delay
        self._http_client: httpx.AsyncClient | None = None

        if client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout_seconds),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
            )
            client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.api_base_url,
                http_client=self._http_client,
                default_headers={"X-Title": "File Context MCP Server"},
            )

        self.client = client
        self._api_call_count = 0

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._http_client is not None:
            await self._http_client.aclose()

    def get_stats(self) -> dict[str, Any]:
        return {"model": self.config.model, "api_calls": self._api_call_count}

    async def decide(
        self,
        system_prompt: str,
        user_prompt: str,
        output_shape: dict[str, Any],
    ) -> Decision:
        payload = await self.generate_structured(system_prompt, user_prompt, output_shape)
        return Decision.from_dict(payload)

    @profile_latency_async("oracle.generate_structured")
    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any],
    ) -> Any:
        """
        Ask the model for a JSON object matching ``schema``.

        Raises:
            GenerationFailed: the API call failed (after retries)
            DecisionInvalid: the response was empty or not valid JSON
        """
        if not self.config.api_key:
            raise GenerationFailed("AI reasoning failed: OPENROUTER_API_KEY environment variable not set")

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        response_format = {
            "type": "json_schema",
            "json_schema": {"name": "reasoning_decision", "schema": schema},
        }

        attempts = max(1, self.config.max_retries)
        content = None
        for attempt in range(attempts):
            try:
                self._api_call_count += 1
                response = await asyncio.wait_for(
                    self.client.chat.completions.create(
                        model=self.config.model,
                        max_tokens=self.config.max_output_tokens,
                        messages=messages,
                        response_format=response_format,
                    ),
                    timeout=self.config.request_timeout_seconds,
                )
                content = response.choices[0].message.content if response.choices else ""
                break

            except RETRYABLE_ERRORS as e:
                if attempt < attempts - 1:
                    # Exponential backoff with jitter
                    delay = self.retry_delay * (2 ** attempt) + random.uniform(0, self.retry_delay)
                    logger.warning(
                        f"[ORACLE] Transient failure ({type(e).__name__}), "
                        f"retry {attempt + 1}/{attempts - 1} in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise GenerationFailed(
                    f"AI reasoning failed after {attempts} attempts: {type(e).__name__}: {e}"
                ) from e

            except Exception as e:
                raise GenerationFailed(f"AI reasoning failed: {type(e).__name__}: {e}") from e

        if not content:
            raise DecisionInvalid("Empty response from model")

        return parse_json_payload(content)
