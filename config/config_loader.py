"""Load settings.yaml into typed dataclasses, and load/validate roundtable presets."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import ValidationError

from agora.errors import ConfigurationError
from config.schema import AgentDefinition, RoundtableConfig

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"
BUILTIN_PRESETS_DIR = Path(__file__).parent / "presets"


@dataclass
class ProviderRoute:
    prefix: str
    sdk: str                       # "anthropic", "openai", "gemini"
    api_key_env: str | None = None
    base_url: str | None = None
    base_url_env: str | None = None  # env var that overrides base_url when set
    strip_prefix: bool = False


@dataclass
class DefaultsConfig:
    model: str
    preset: str
    agent_timeout_sec: float
    history_db: Path
    user_presets_dir: Path


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    providers: list[ProviderRoute] = field(default_factory=list)

    @property
    def preset_dirs(self) -> list[Path]:
        """User presets shadow built-in ones."""
        return [self.defaults.user_presets_dir, BUILTIN_PRESETS_DIR]


@dataclass
class PresetInfo:
    name: str
    description: str
    source: str  # "user" or "builtin"


DEFAULT_PRESET = RoundtableConfig(
    name="Default Roundtable",
    description="Balanced 3-agent panel discussion",
    max_rounds=2,
    agents=[
        AgentDefinition(
            id="analyst",
            name="The Analyst",
            role="panelist",
            model="gpt-4.1-mini",
            system_prompt=(
                "You are a thorough analytical thinker evaluating: {{topic}}. Examine evidence, "
                "identify key data points, and present structured arguments. Be concise and specific."
            ),
            temperature=0.7,
            max_tokens=1024,
        ),
        AgentDefinition(
            id="critic",
            name="The Critic",
            role="panelist",
            model="gpt-4.1-mini",
            system_prompt=(
                "You are a devil's advocate examining: {{topic}}. Challenge assumptions, find "
                "weaknesses in arguments, and present alternative perspectives. Be concise."
            ),
            temperature=0.8,
            max_tokens=1024,
        ),
        AgentDefinition(
            id="synthesizer",
            name="The Synthesizer",
            role="synthesizer",
            model="gpt-4.1-mini",
            system_prompt=(
                "Review the full discussion about: {{topic}}. Produce a clear, balanced, actionable "
                "final answer incorporating the best insights from all participants."
            ),
            temperature=0.3,
            max_tokens=2048,
        ),
    ],
)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        model=str(defaults_raw["model"]),
        preset=str(defaults_raw.get("preset", "default")),
        agent_timeout_sec=float(defaults_raw["agent_timeout_sec"]),
        history_db=Path(defaults_raw["history_db"]).expanduser(),
        user_presets_dir=Path(defaults_raw["user_presets_dir"]).expanduser(),
    )

    providers = [
        ProviderRoute(
            prefix=str(route_raw["prefix"]),
            sdk=str(route_raw["sdk"]),
            api_key_env=route_raw.get("api_key_env"),
            base_url=route_raw.get("base_url"),
            base_url_env=route_raw.get("base_url_env"),
            strip_prefix=bool(route_raw.get("strip_prefix", False)),
        )
        for route_raw in raw.get("providers", [])
    ]

    return AppConfig(defaults=defaults, providers=providers)


def _parse_preset(path: Path) -> RoundtableConfig:
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        return RoundtableConfig.model_validate(raw)
    except (yaml.YAMLError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid preset {path.name}: {exc}") from exc


def load_preset(name: str, preset_dirs: list[Path]) -> RoundtableConfig:
    """Load a preset by name, searching preset_dirs in order.

    Raises:
        ConfigurationError: If no directory holds ``<name>.yaml`` or it fails validation.
    """
    for directory in preset_dirs:
        path = directory / f"{name}.yaml"
        if path.exists():
            logger.debug("Loading preset %s from %s", name, path)
            return _parse_preset(path)
    raise ConfigurationError(f'Preset "{name}" not found. Run "agora presets" to see available presets.')


def list_presets(preset_dirs: list[Path]) -> list[PresetInfo]:
    """List presets across all directories. Earlier directories shadow later ones."""
    seen: set[str] = set()
    presets: list[PresetInfo] = []
    for index, directory in enumerate(preset_dirs):
        if not directory.is_dir():
            continue
        source = "user" if index < len(preset_dirs) - 1 else "builtin"
        for path in sorted(directory.glob("*.yaml")):
            name = path.stem
            if name in seen:
                continue
            seen.add(name)
            try:
                with path.open("r", encoding="utf-8") as f:
                    raw = yaml.safe_load(f) or {}
                description = raw.get("description") or raw.get("name") or name
            except yaml.YAMLError as exc:
                logger.warning("Unreadable preset %s: %s", path, exc)
                description = name
            presets.append(PresetInfo(name=name, description=str(description), source=source))
    return presets


def interpolate_config(config: RoundtableConfig, topic: str) -> RoundtableConfig:
    """Return a copy of config with {{topic}} substituted in every system prompt."""
    agents = [
        agent.model_copy(update={"system_prompt": agent.system_prompt.replace("{{topic}}", topic)})
        for agent in config.agents
    ]
    return config.model_copy(update={"agents": agents})
