"""Prompt templates and YAML loader for analyzer profiles."""

import json
from pathlib import Path
from typing import Any

import yaml
from jinja2 import BaseLoader, Environment, StrictUndefined

from concord.config import get_settings


ANALYSIS_PROMPT_TEMPLATE = """## Report Under Review
Report type: {{ report_type }}
{% if context %}
### Submission Context
{% for key, value in context | dictsort %}- {{ key }}: {{ value }}
{% endfor %}{% endif %}
### Report Content
<report>
{{ content }}
</report>

---

Review the report above against your criteria. Every severity you assign must
be tied to a concrete flagged concern; if you found no concern, the security
assessment is "low".
"""


class PromptLoader:
    """Loader for YAML-based analyzer profiles."""

    def __init__(self, prompts_dir: Path | None = None) -> None:
        self._prompts_dir = prompts_dir or get_settings().prompts_dir
        self._cache: dict[str, dict[str, Any]] = {}

    def load_analyzer_prompt(self, analyzer_id: str) -> dict[str, Any]:
        """Load analyzer profile from YAML."""
        return self._load_prompt("analyzers", analyzer_id)

    def _load_prompt(self, category: str, prompt_id: str) -> dict[str, Any]:
        """Load and cache prompt from YAML file."""
        cache_key = f"{category}/{prompt_id}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        file_path = self._prompts_dir / category / f"{prompt_id}.yaml"
        if not file_path.exists():
            raise FileNotFoundError(f"Prompt file not found: {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            prompt_data = yaml.safe_load(f)

        self._cache[cache_key] = prompt_data
        return prompt_data

    def list_available(self, category: str = "analyzers") -> list[str]:
        """List available prompts in a category."""
        category_dir = self._prompts_dir / category
        if not category_dir.exists():
            return []

        return sorted(f.stem for f in category_dir.glob("*.yaml"))


class PromptBuilder:
    """Builder for constructing analyzer prompts."""

    def __init__(self) -> None:
        self._jinja = Environment(
            loader=BaseLoader(),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self._analysis_template = self._jinja.from_string(ANALYSIS_PROMPT_TEMPLATE)

    def build_system_prompt(
        self,
        persona: str,
        focus_areas: list[str],
        criteria: list[str],
    ) -> str:
        """Build system prompt for a reviewing model."""
        focus_text = "\n".join(f"- {f}" for f in focus_areas)
        criteria_text = "\n".join(f"{i}. {c}" for i, c in enumerate(criteria, start=1))

        return f"""{persona}

## Your Focus
{focus_text}

## Review Criteria
{criteria_text}

## Severity Scale
- low: cosmetic or no security impact
- medium: incomplete or inconsistent information that weakens the record
- high: missing or wrong information with a security or compliance impact
- critical: an unaddressed threat to people, assets or legal standing

## Output Requirements
You must respond with a valid JSON object containing:
- confidence: your confidence in this review, between 0 and 1
- analysis_text: 1-3 paragraphs reviewing the report
- flagged_concerns: array of {{"description", "severity"}} objects
- suggested_improvements: array of concrete edits
- security_assessment: one of "low", "medium", "high", "critical"
- completeness_score: between 0 and 1
- clarity_score: between 0 and 1

Respond ONLY with the JSON object, no additional text or markdown.
"""

    def build_analysis_prompt(
        self,
        content: str,
        report_type: str,
        context: dict[str, Any] | None = None,
    ) -> str:
        """Render the user prompt carrying the report."""
        flat_context = {
            key: value if isinstance(value, str) else json.dumps(value, default=str)
            for key, value in (context or {}).items()
        }
        return self._analysis_template.render(
            content=content,
            report_type=report_type,
            context=flat_context,
        )
