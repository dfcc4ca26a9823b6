"""Tests for the Claude client wrapper and prompt building."""

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from concord.core.exceptions import LLMError
from concord.llm.client import ClaudeClient
from concord.llm.prompts import PromptBuilder, PromptLoader
from concord.llm.schemas import ANALYSIS_RESULT_SCHEMA


class _FakeMessages:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(text=self.reply)])


def _client(settings, **kwargs) -> tuple[ClaudeClient, _FakeMessages]:
    messages = _FakeMessages(**kwargs)
    fake = SimpleNamespace(messages=messages)
    return ClaudeClient("claude-test", settings, client=fake), messages


def _status_error(status_code: int) -> anthropic.APIStatusError:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(status_code, request=request)
    return anthropic.APIStatusError("error", response=response, body=None)


class TestClaudeClient:
    """Test response parsing and error mapping."""

    @pytest.mark.asyncio
    async def test_parses_fenced_json(self, settings):
        """Markdown code fences around the JSON are removed."""
        client, messages = _client(settings, reply='```json\n{"confidence": 0.9}\n```')

        result = await client.complete("system", "user", ANALYSIS_RESULT_SCHEMA)

        assert result == {"confidence": 0.9}
        assert messages.calls[0]["model"] == "claude-test"
        assert "valid JSON object" in messages.calls[0]["system"]

    @pytest.mark.asyncio
    async def test_invalid_json(self, settings):
        """Unparseable replies raise a non-transient LLMError."""
        client, _ = _client(settings, reply="not json")

        with pytest.raises(LLMError) as exc_info:
            await client.complete("system", "user")

        assert not exc_info.value.transient

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code, transient", [(429, True), (529, True), (400, False)])
    async def test_status_errors(self, settings, status_code, transient):
        """Rate limits and overload are transient, bad requests are not."""
        client, _ = _client(settings, error=_status_error(status_code))

        with pytest.raises(LLMError) as exc_info:
            await client.complete("system", "user")

        assert exc_info.value.status_code == status_code
        assert exc_info.value.transient is transient

    @pytest.mark.asyncio
    async def test_health_check(self, settings):
        """Any reply counts as a reachable model."""
        client, messages = _client(settings, reply="ok")

        assert await client.health_check() is True
        assert messages.calls[0]["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_health_check_connection_error(self, settings):
        """API errors are reported as unhealthy, not raised."""
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client, _ = _client(settings, error=anthropic.APIConnectionError(request=request))

        assert await client.health_check() is False


class TestPrompts:
    """Test prompt loading and rendering."""

    def test_loader_lists_bundled_profiles(self, settings):
        """Both analyzer profiles ship with the package."""
        loader = PromptLoader(settings.prompts_dir)

        assert loader.list_available() == ["compliance", "security"]
        assert loader.load_analyzer_prompt("security")["id"] == "security"

    def test_loader_missing_profile(self, settings):
        """Unknown profiles raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            PromptLoader(settings.prompts_dir).load_analyzer_prompt("nonexistent")

    def test_analysis_prompt(self):
        """The user prompt carries content, type and flattened context."""
        prompt = PromptBuilder().build_analysis_prompt(
            content="Gate alarm at 02:10.",
            report_type="incident_report",
            context={"site": "north", "officers": ["A. Smith"]},
        )

        assert "Report type: incident_report" in prompt
        assert "<report>\nGate alarm at 02:10.\n</report>" in prompt
        assert '- officers: ["A. Smith"]' in prompt

    def test_system_prompt(self):
        """The system prompt lists focus areas and numbered criteria."""
        prompt = PromptBuilder().build_system_prompt(
            persona="You audit reports.",
            focus_areas=["Completeness"],
            criteria=["Check timestamps", "Check names"],
        )

        assert prompt.startswith("You audit reports.")
        assert "- Completeness" in prompt
        assert "2. Check names" in prompt
