"""Story-generation service clients.

The turn controller depends only on the ``StoryGenerator`` protocol. The
shipped implementation talks to any OpenAI-compatible chat completions
endpoint (OpenRouter by default) and maps SDK failures onto the storyforge
exception hierarchy:

* ``AIConnectionError``: the service could not be reached (retried).
* ``AIRateLimitError``: the service refused for rate limiting (retried).
* ``AIResponseError``: the service answered without usable content.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from storyforge.core.config import AIProviderSettings, get_settings
from storyforge.core.exceptions import (
    AIConnectionError,
    AIRateLimitError,
    AIResponseError,
    ConfigurationError,
)
from storyforge.core.logging import get_logger
from storyforge.dm.prompts import SUMMARY_PROMPT, SUMMARY_SYSTEM_PROMPT, system_prompt_for
from storyforge.engine.context import StoryContext


if TYPE_CHECKING:
    from tenacity.wait import wait_base

logger = get_logger(__name__)


class StoryGenerator(Protocol):
    """Asynchronous story-generation collaborator."""

    async def generate(self, context: StoryContext) -> str | Mapping[str, Any]:
        """Produce the raw AI output for one story step."""
        ...

    async def summarize(self, log_text: str) -> str:
        """Produce an epilogue summary of a finished adventure."""
        ...


def _retry_after(exc: RateLimitError) -> float | None:
    """Read the Retry-After header from a rate limit response, if any."""
    header = exc.response.headers.get("retry-after") if exc.response is not None else None
    if header is None:
        return None
    try:
        return float(header)
    except ValueError:
        return None


class OpenAIStoryGenerator:
    """Story generator backed by an OpenAI-compatible chat completions API.

    Example:
        >>> generator = OpenAIStoryGenerator()
        >>> raw = await generator.generate(context)
    """

    def __init__(
        self,
        *,
        settings: AIProviderSettings | None = None,
        client: AsyncOpenAI | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            settings: Provider settings; the application settings when None.
            client: Preconfigured client, mainly for tests.
            retry_wait: Wait strategy between retries.

        Raises:
            ConfigurationError: If no client is given and the configured
                provider has no API key.
        """
        settings = settings or get_settings().ai
        self.provider = settings.default_provider
        self.story_model = settings.story_model
        self.summary_model = settings.summary_model
        self.temperature = settings.temperature
        self.max_retries = settings.max_retries
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

        if client is None:
            api_key = settings.api_key
            if api_key is None:
                raise ConfigurationError(
                    f"No API key configured for provider {self.provider!r}",
                    config_key=f"{self.provider}_api_key",
                )
            client = AsyncOpenAI(
                api_key=api_key.get_secret_value(),
                base_url=settings.resolved_base_url,
                timeout=settings.timeout_seconds,
                max_retries=0,
                default_headers={"X-Title": "StoryForge"},
            )
        self.client = client

        logger.info(
            "OpenAIStoryGenerator initialized",
            provider=self.provider,
            story_model=self.story_model,
            max_retries=self.max_retries,
        )

    async def generate(self, context: StoryContext) -> str:
        """Request the next story step.

        Args:
            context: Snapshot of the game for this turn.

        Returns:
            Raw response text, in the wire format the context requests.

        Raises:
            AIConnectionError: If the service stays unreachable after retries.
            AIResponseError: If the service returns no usable content.
        """
        extra: dict[str, Any] = {}
        if context.wire_format == "structured":
            extra["response_format"] = {"type": "json_object"}

        logger.info("Requesting story step", model=self.story_model, wire_format=context.wire_format)
        return await self._complete_with_retry(
            model=self.story_model,
            messages=[
                {"role": "system", "content": system_prompt_for(context.wire_format)},
                {"role": "user", "content": context.to_prompt_text()},
            ],
            temperature=self.temperature,
            **extra,
        )

    async def summarize(self, log_text: str) -> str:
        """Request an epilogue summary of the adventure log.

        Args:
            log_text: The exported adventure log.

        Returns:
            The summary text.

        Raises:
            AIConnectionError: If the service stays unreachable after retries.
            AIResponseError: If the service returns no usable content.
        """
        logger.info("Requesting adventure summary", model=self.summary_model)
        text = await self._complete_with_retry(
            model=self.summary_model,
            messages=[
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": SUMMARY_PROMPT.format(log=log_text)},
            ],
            temperature=0.7,
        )
        return text.strip()

    async def _complete_with_retry(self, **request: Any) -> str:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(AIConnectionError),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._retry_wait,
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying AI request",
                        attempt=attempt.retry_state.attempt_number,
                        model=request.get("model"),
                    )
                return await self._complete(**request)
        raise AIConnectionError("AI request was not attempted", provider=self.provider)

    async def _complete(self, **request: Any) -> str:
        model = request.get("model")
        try:
            response = await self.client.chat.completions.create(**request)
        except RateLimitError as exc:
            raise AIRateLimitError(
                f"AI rate limit exceeded: {exc}",
                retry_after_seconds=_retry_after(exc),
                model=model,
                provider=self.provider,
            ) from exc
        except APIConnectionError as exc:
            raise AIConnectionError(
                f"Failed to connect to AI provider: {exc}",
                model=model,
                provider=self.provider,
            ) from exc
        except APIStatusError as exc:
            if exc.status_code >= 500:
                raise AIConnectionError(
                    f"AI provider unavailable: {exc}",
                    model=model,
                    provider=self.provider,
                    details={"status_code": exc.status_code},
                ) from exc
            raise AIResponseError(
                f"AI provider rejected the request: {exc}",
                model=model,
                provider=self.provider,
                details={"status_code": exc.status_code},
            ) from exc
        except APIError as exc:
            raise AIResponseError(
                f"AI provider returned an unusable response: {exc}",
                model=model,
                provider=self.provider,
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise AIResponseError("No response text from AI", model=model, provider=self.provider)

        logger.debug("AI response received", model=model, response_length=len(content))
        return content


__all__ = [
    "StoryGenerator",
    "OpenAIStoryGenerator",
]
