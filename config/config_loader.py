"""Load settings.yaml into typed dataclasses. Reports provider availability at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from dialectic.errors import ConfigError
from dialectic.models import (
    ROLE_ARCHITECT,
    ROLE_JUDGE,
    ROLE_PERFORMANCE,
    AgentConfig,
    DebateConfig,
    SummarizationConfig,
    TerminationCondition,
)

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_DEFAULT_MODEL = "gpt-4o"


@dataclass
class ProviderConfig:
    name: str
    api_key_env: str
    base_url: str | None = None
    timeout_sec: int | None = None
    max_tokens: int | None = None


@dataclass
class DefaultsConfig:
    state_dir: Path = Path("./debates")
    output_dir: Path = Path("./output")


@dataclass
class AppConfig:
    agents: list[AgentConfig]
    judge: AgentConfig
    debate: DebateConfig
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    config_dir: Path = Path(".")
    available_providers: set[str] = field(default_factory=set)


def default_provider_configs() -> dict[str, ProviderConfig]:
    return {
        "openai": ProviderConfig(name="openai", api_key_env="OPENAI_API_KEY"),
        "openrouter": ProviderConfig(
            name="openrouter",
            api_key_env="OPENROUTER_API_KEY",
            base_url="https://openrouter.ai/api/v1",
        ),
        "anthropic": ProviderConfig(name="anthropic", api_key_env="ANTHROPIC_API_KEY", max_tokens=8192),
    }


def default_agents() -> list[AgentConfig]:
    return [
        AgentConfig(
            id="agent-architect",
            name="System Architect",
            role=ROLE_ARCHITECT,
            model=_DEFAULT_MODEL,
            provider="openai",
            temperature=0.5,
        ),
        AgentConfig(
            id="agent-performance",
            name="Performance Engineer",
            role=ROLE_PERFORMANCE,
            model=_DEFAULT_MODEL,
            provider="openai",
            temperature=0.5,
        ),
    ]


def default_judge() -> AgentConfig:
    return AgentConfig(
        id="judge-main",
        name="Technical Judge",
        role=ROLE_JUDGE,
        model=_DEFAULT_MODEL,
        provider="openai",
        temperature=0.3,
    )


def _parse_agent(raw: dict, index: int) -> AgentConfig:
    missing = [k for k in ("id", "name", "role", "model", "provider") if not raw.get(k)]
    if missing:
        raise ConfigError(f"Agent #{index + 1} is missing required fields: {', '.join(missing)}")
    limit = raw.get("tool_call_limit")
    if limit is not None and int(limit) < 0:
        raise ConfigError(f"Agent '{raw['id']}': tool_call_limit must be >= 0, got {limit}")
    return AgentConfig(
        id=str(raw["id"]),
        name=str(raw["name"]),
        role=str(raw["role"]),
        model=str(raw["model"]),
        provider=str(raw["provider"]),
        temperature=float(raw.get("temperature", 0.5)),
        tool_call_limit=int(limit) if limit is not None else None,
        system_prompt_path=raw.get("system_prompt_path"),
        summary_prompt_path=raw.get("summary_prompt_path"),
        enabled=bool(raw.get("enabled", True)),
    )


def _parse_debate(raw: dict) -> DebateConfig:
    term_raw = raw.get("termination_condition") or {}
    summ_raw = raw.get("summarization") or {}
    defaults = DebateConfig()
    summ_defaults = SummarizationConfig()
    termination = TerminationCondition(
        type=str(term_raw.get("type", TerminationCondition().type)),
        threshold=int(term_raw.get("threshold", TerminationCondition().threshold)),
    )
    summarization = SummarizationConfig(
        enabled=bool(summ_raw.get("enabled", summ_defaults.enabled)),
        threshold=int(summ_raw.get("threshold", summ_defaults.threshold)),
        max_length=int(summ_raw.get("max_length", summ_defaults.max_length)),
        method=str(summ_raw.get("method", summ_defaults.method)),
    )
    rounds = int(raw.get("rounds", defaults.rounds))
    if rounds < 1:
        raise ConfigError(f"debate.rounds must be >= 1, got {rounds}")
    return DebateConfig(
        rounds=rounds,
        termination_condition=termination,
        synthesis_method=str(raw.get("synthesis_method", defaults.synthesis_method)),
        include_full_history=bool(raw.get("include_full_history", defaults.include_full_history)),
        timeout_per_round=int(raw.get("timeout_per_round", defaults.timeout_per_round)),
        summarization=summarization,
        orchestrator_type=str(raw.get("orchestrator_type", defaults.orchestrator_type)),
        interactive_clarifications=bool(raw.get("interactive_clarifications", defaults.interactive_clarifications)),
        clarifications_max_per_agent=int(
            raw.get("clarifications_max_per_agent", defaults.clarifications_max_per_agent)
        ),
        clarifications_max_iterations=int(
            raw.get("clarifications_max_iterations", defaults.clarifications_max_iterations)
        ),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ConfigError if it is
    malformed. Missing sections fall back to built-in defaults. Logs provider
    availability but does not raise for missing API keys; providers check
    their own key when constructed.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {settings_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file must contain a mapping: {settings_path}")

    defaults_raw = raw.get("defaults") or {}
    defaults = DefaultsConfig(
        state_dir=Path(defaults_raw.get("state_dir", DefaultsConfig().state_dir)),
        output_dir=Path(defaults_raw.get("output_dir", DefaultsConfig().output_dir)),
    )

    providers = default_provider_configs()
    for provider_name, provider_raw in (raw.get("providers") or {}).items():
        base = providers.get(provider_name)
        providers[provider_name] = ProviderConfig(
            name=provider_name,
            api_key_env=provider_raw.get("api_key_env", base.api_key_env if base else ""),
            base_url=provider_raw.get("base_url", base.base_url if base else None),
            timeout_sec=provider_raw.get("timeout_sec", base.timeout_sec if base else None),
            max_tokens=provider_raw.get("max_tokens", base.max_tokens if base else None),
        )

    agents_raw = raw.get("agents")
    if agents_raw:
        agents = [_parse_agent(a, i) for i, a in enumerate(agents_raw)]
    else:
        logger.info("No agents configured, using built-in defaults")
        agents = default_agents()

    judge = _parse_agent(raw["judge"], 0) if raw.get("judge") else default_judge()
    debate = _parse_debate(raw.get("debate") or {})

    available_providers: set[str] = set()
    for provider_name, provider_cfg in providers.items():
        api_key = os.environ.get(provider_cfg.api_key_env, "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.debug("Provider available: %s", provider_name)
        else:
            logger.debug(
                "Provider unavailable (no API key): %s - set %s in .env",
                provider_name,
                provider_cfg.api_key_env,
            )

    return AppConfig(
        agents=agents,
        judge=judge,
        debate=debate,
        defaults=defaults,
        providers=providers,
        config_dir=settings_path.resolve().parent,
        available_providers=available_providers,
    )
