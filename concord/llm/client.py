"""Async Anthropic Claude client wrapper."""

import json
import logging
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from concord.config import Settings, get_settings
from concord.core.exceptions import LLMError

logger = logging.getLogger(__name__)

# Retryable HTTP status codes
TRANSIENT_STATUS_CODES = {408, 409, 429, 500, 502, 503, 504, 529}


class ClaudeClient:
    """Async wrapper for the Anthropic Messages API.

    The SDK retry loop is disabled; callers own the retry budget.
    """

    def __init__(
        self,
        model: str,
        settings: Settings | None = None,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or AsyncAnthropic(
            api_key=self._settings.anthropic_api_key,
            max_retries=0,
        )
        self._model = model

    @property
    def model(self) -> str:
        """Get the current model name."""
        return self._model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        response_schema: dict[str, Any] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> dict[str, Any]:
        """
        Send a completion request and parse the JSON reply.

        Args:
            system_prompt: The system prompt defining reviewer behaviour
            user_prompt: The user message carrying the report
            response_schema: Optional JSON schema for structured output
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature (0-1)

        Returns:
            Parsed JSON response as dict

        Raises:
            LLMError: on API failure (``transient`` set for retryable errors)
                or on an unparseable reply
        """
        if response_schema:
            schema_instruction = (
                "\n\nYou MUST respond with a valid JSON object matching this schema:\n"
                f"```json\n{json.dumps(response_schema, indent=2)}\n```\n"
                "Respond ONLY with the JSON object, no additional text."
            )
            full_system = system_prompt + schema_instruction
        else:
            full_system = system_prompt

        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=full_system,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIConnectionError as e:
            raise LLMError(
                f"Claude API connection error: {e}",
                model=self._model,
                transient=True,
            ) from e
        except anthropic.APIStatusError as e:
            raise LLMError(
                f"Claude API error: {e}",
                model=self._model,
                status_code=e.status_code,
                transient=e.status_code in TRANSIENT_STATUS_CODES,
            ) from e

        content = response.content[0].text
        logger.debug("Model %s replied with %d characters", self._model, len(content))

        try:
            return self._parse_json_response(content)
        except json.JSONDecodeError as e:
            raise LLMError(
                f"Failed to parse JSON response: {e}",
                model=self._model,
                details={"raw_response": content[:500]},
            ) from e

    def _parse_json_response(self, content: str) -> dict[str, Any]:
        """Parse JSON from response, handling markdown code blocks."""
        content = content.strip()

        # Remove markdown code blocks if present
        if content.startswith("```json"):
            content = content[7:]
        elif content.startswith("```"):
            content = content[3:]

        if content.endswith("```"):
            content = content[:-3]

        content = content.strip()

        return json.loads(content)

    async def health_check(self) -> bool:
        """Check API connectivity."""
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=10,
                messages=[{"role": "user", "content": "Say 'ok'"}],
            )
            return len(response.content) > 0
        except anthropic.APIError:
            return False
