"""Analyzer registry for loading profiles and building the analyzer pair."""

import logging
from pathlib import Path

import yaml

from concord.config import Settings, get_settings
from concord.core.exceptions import ConfigurationError
from concord.core.models import AnalyzerProfile
from concord.analyzers.base import LLMAnalyzer
from concord.llm.client import ClaudeClient
from concord.llm.prompts import PromptBuilder, PromptLoader

logger = logging.getLogger(__name__)


class AnalyzerRegistry:
    """
    Central registry for analyzer discovery and instantiation.

    Handles:
    - Loading analyzer profiles from YAML prompts
    - Binding the two configured slots (A and B) to a model and a timeout
    - Analyzer instantiation with dependency injection
    """

    def __init__(
        self,
        settings: Settings | None = None,
        llm_clients: dict[str, ClaudeClient] | None = None,
        prompts_dir: Path | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._llm_clients: dict[str, ClaudeClient] = dict(llm_clients or {})
        self._prompts_dir = prompts_dir or self._settings.prompts_dir
        self._prompt_loader = PromptLoader(self._prompts_dir)
        self._prompt_builder = PromptBuilder()
        self._profiles: dict[str, AnalyzerProfile] = {}
        self._loaded = False

    def _ensure_llm_client(self, model: str) -> ClaudeClient:
        """Get or create the client for a model."""
        if model not in self._llm_clients:
            self._llm_clients[model] = ClaudeClient(model, self._settings)
        return self._llm_clients[model]

    def _load_profiles(self) -> None:
        """Load all analyzer profiles from YAML files."""
        if self._loaded:
            return

        analyzers_dir = self._prompts_dir / "analyzers"
        if analyzers_dir.exists():
            for yaml_file in sorted(analyzers_dir.glob("*.yaml")):
                profile = self._load_profile_from_yaml(yaml_file)
                if profile:
                    self._profiles[profile.id] = profile

        self._loaded = True

    def _load_profile_from_yaml(self, yaml_path: Path) -> AnalyzerProfile | None:
        """Load analyzer profile from YAML file."""
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)

            return AnalyzerProfile(
                id=data["id"],
                name=data["name"],
                description=data.get("description", ""),
                enabled=data.get("enabled", True),
            )
        except (OSError, KeyError, TypeError, ValueError, yaml.YAMLError) as e:
            logger.warning("Failed to load analyzer profile from %s: %s", yaml_path, e)
            return None

    def get_profile(self, analyzer_id: str) -> AnalyzerProfile | None:
        """Get analyzer profile by ID."""
        self._load_profiles()
        return self._profiles.get(analyzer_id)

    def list_profiles(self, enabled_only: bool = True) -> list[AnalyzerProfile]:
        """List all analyzer profiles."""
        self._load_profiles()

        profiles = list(self._profiles.values())
        if enabled_only:
            profiles = [p for p in profiles if p.enabled]

        return sorted(profiles, key=lambda p: p.name)

    def build_analyzer(self, analyzer_id: str, model: str, timeout: float) -> LLMAnalyzer:
        """Instantiate an analyzer bound to a model and timeout."""
        base_profile = self.get_profile(analyzer_id)
        if base_profile is None:
            raise ConfigurationError(
                f"Unknown analyzer profile: {analyzer_id}",
                details={"available": sorted(self._profiles)},
            )
        if not base_profile.enabled:
            raise ConfigurationError(f"Analyzer profile is disabled: {analyzer_id}")

        profile = base_profile.model_copy(update={"model": model, "timeout": timeout})
        data = self._prompt_loader.load_analyzer_prompt(analyzer_id)
        timeouts = self._settings.timeouts

        return LLMAnalyzer(
            profile=profile,
            llm_client=self._ensure_llm_client(model),
            prompt_builder=self._prompt_builder,
            persona=data.get("persona", ""),
            focus_areas=data.get("focus_areas", []),
            criteria=data.get("criteria", []),
            max_tokens=self._settings.max_tokens,
            temperature=self._settings.temperature,
            retries=timeouts.retries,
            retry_backoff=timeouts.retry_backoff,
            retry_backoff_max=timeouts.retry_backoff_max,
        )

    def get_analyzer_pair(self) -> tuple[LLMAnalyzer, LLMAnalyzer]:
        """Build the configured analyzer A and analyzer B."""
        settings = self._settings
        if settings.analyzer_a == settings.analyzer_b:
            raise ConfigurationError(
                "Analyzer A and B must use different profiles",
                details={"analyzer": settings.analyzer_a},
            )

        analyzer_a = self.build_analyzer(
            settings.analyzer_a,
            settings.analyzer_a_model,
            settings.timeouts.analyzer_a,
        )
        analyzer_b = self.build_analyzer(
            settings.analyzer_b,
            settings.analyzer_b_model,
            settings.timeouts.analyzer_b,
        )
        return analyzer_a, analyzer_b
