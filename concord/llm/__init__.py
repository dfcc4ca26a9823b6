"""LLM integration for the reviewing models."""

from concord.llm.client import ClaudeClient
from concord.llm.prompts import PromptBuilder, PromptLoader
from concord.llm.schemas import ANALYSIS_RESULT_SCHEMA

__all__ = [
    "ClaudeClient",
    "PromptBuilder",
    "PromptLoader",
    "ANALYSIS_RESULT_SCHEMA",
]
