"""LLM completion providers behind a single ``complete()`` call.

The provider is chosen once from Settings.llm_provider; agents only ever
see the LLMProvider protocol.
"""

import asyncio
import logging
import os
import time
from typing import Optional, Protocol, runtime_checkable

from claude_agent_sdk import query, ClaudeAgentOptions, ResultMessage, AssistantMessage
from openai import AsyncOpenAI, APIConnectionError, APIStatusError, RateLimitError

from config.exceptions import LLMError, LLMRateLimitError, LLMTimeoutError
from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Allow launching Agent SDK even when running inside a Claude Code session.
# The SDK checks for this env var and refuses to start if set.
os.environ.pop("CLAUDECODE", None)

_JSON_ONLY_INSTRUCTION = (
    "\n\nRespond with valid JSON only. Do not wrap it in markdown code fences "
    "and do not add any text before or after it."
)


@runtime_checkable
class LLMProvider(Protocol):
    """A chat-completion backend."""

    name: str

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.7,
        max_output_tokens: int = 4096,
    ) -> str:
        """Return the model's text response."""
        ...


class AgentSDKProvider:
    """Claude Agent SDK backend.

    Authentication is handled by the Claude Code CLI. Temperature and
    output caps are not exposed by the SDK, so they are only logged.
    """

    name = "agent_sdk"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.total_calls = 0

    async def _run_query(self, system_prompt: str, user_prompt: str, model: str) -> str:
        result_text = ""
        # Exhaust the generator fully: query() uses anyio cancel scopes and
        # leaving the loop early raises "exit cancel scope in a different task".
        async for message in query(
            prompt=user_prompt,
            options=ClaudeAgentOptions(system_prompt=system_prompt, model=model, max_turns=1),
        ):
            if isinstance(message, ResultMessage):
                result_text = message.result or result_text
                logger.debug("AgentSDK result: %d chars, cost=$%s", len(result_text), message.total_cost_usd)
            elif isinstance(message, AssistantMessage) and not result_text:
                parts = [block.text for block in message.content if getattr(block, "text", None)]
                if parts:
                    result_text = "".join(parts)
        return result_text

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.7,
        max_output_tokens: int = 4096,
    ) -> str:
        model = model or self.settings.llm_model_flashcards
        if json_mode:
            system_prompt = system_prompt + _JSON_ONLY_INSTRUCTION
        self.total_calls += 1
        logger.debug(
            "AgentSDK call: model=%s, json=%s, temperature=%.1f, max_tokens=%d, prompt=%d chars",
            model, json_mode, temperature, max_output_tokens, len(user_prompt),
        )

        started = time.monotonic()
        try:
            text = await asyncio.wait_for(
                self._run_query(system_prompt, user_prompt, model),
                timeout=self.settings.llm_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError(
                f"Agent SDK query timed out after {self.settings.llm_timeout_seconds}s"
            ) from e
        except Exception as e:
            if "rate limit" in str(e).lower() or "429" in str(e):
                raise LLMRateLimitError(f"Agent SDK rate limited: {e}") from e
            raise LLMError(f"Agent SDK query failed: {e}") from e

        logger.debug("AgentSDK call finished in %.1fs", time.monotonic() - started)
        if not text:
            logger.warning("AgentSDK returned no content")
        return text


class OpenAIProvider:
    """OpenAI chat completions, or any OpenAI-compatible endpoint via base_url."""

    name = "openai"

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.settings = settings or get_settings()
        self.total_calls = 0
        if client is None:
            api_key = self.settings.openai_api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise LLMError("openai_api_key is required for the openai provider")
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.settings.openai_base_url,
                timeout=self.settings.llm_timeout_seconds,
            )
        self._client = client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.7,
        max_output_tokens: int = 4096,
    ) -> str:
        model = model or self.settings.llm_model_flashcards
        self.total_calls += 1
        logger.debug(
            "OpenAI call: model=%s, json=%s, temperature=%.1f, max_tokens=%d, prompt=%d chars",
            model, json_mode, temperature, max_output_tokens, len(user_prompt),
        )

        kwargs = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_output_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        started = time.monotonic()
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except RateLimitError as e:
            raise LLMRateLimitError(f"OpenAI rate limited: {e}") from e
        except APIConnectionError as e:
            # APITimeoutError is a subclass
            raise LLMTimeoutError(f"OpenAI request failed to complete: {e}") from e
        except APIStatusError as e:
            raise LLMError(f"OpenAI returned HTTP {e.status_code}: {e}") from e

        content = response.choices[0].message.content or ""
        if response.usage:
            logger.debug(
                "OpenAI usage: prompt=%d, completion=%d tokens, %.1fs",
                response.usage.prompt_tokens, response.usage.completion_tokens,
                time.monotonic() - started,
            )
        return content


def build_provider(settings: Settings) -> LLMProvider:
    """Instantiate the provider named by ``settings.llm_provider``."""
    if settings.llm_provider == "openai":
        return OpenAIProvider(settings)
    return AgentSDKProvider(settings)


_provider_instance: LLMProvider | None = None


def get_provider(settings: Optional[Settings] = None) -> LLMProvider:
    """Get the process-wide provider, building it on first use."""
    global _provider_instance
    if _provider_instance is None:
        _provider_instance = build_provider(settings or get_settings())
        logger.info("LLM provider selected: %s", _provider_instance.name)
    return _provider_instance
