"""Analyzer invokers for the two reviewing models."""

from concord.analyzers.base import BaseAnalyzer, LLMAnalyzer
from concord.analyzers.registry import AnalyzerRegistry

__all__ = ["BaseAnalyzer", "LLMAnalyzer", "AnalyzerRegistry"]
