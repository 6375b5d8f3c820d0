"""Configuration loader for the newsgraph explorer."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from typing_extensions import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from newsgraph.errors import ConfigError

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

API_BASE_URL_ENV_VARS = (
    "NEWSGRAPH_API_BASE_URL",
    "NEXT_PUBLIC_API_BASE_URL",
)


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


class APIConfig(_FrozenModel):
    """Backend API connection settings."""

    base_url: str = Field(..., min_length=1)
    timeout_seconds: float = Field(..., gt=0)
    keyword_limit: int = Field(30, ge=1)
    timeline_days: int = Field(30, ge=1)


class ExplorationConfig(_FrozenModel):
    """Query parameters sent with every graph exploration."""

    view: Literal["full", "similarity"] = Field("full")
    depth: int = Field(1, ge=1)
    max_keyword_nodes: int = Field(15, ge=1)
    max_articles_per_keyword: int = Field(3, ge=0)
    similarity_threshold: float = Field(0.3, ge=0.0, le=1.0)
    similarity_limit: int = Field(10, ge=1)


class ViewportConfig(_FrozenModel):
    """Dimensions of the drawing surface in scene units."""

    width: float = Field(860.0, gt=0)
    height: float = Field(540.0, gt=0)

    @property
    def center(self) -> tuple[float, float]:
        return (self.width / 2.0, self.height / 2.0)


class GraphStyleConfig(_FrozenModel):
    """Constants used when deriving node visual attributes."""

    article_label_max_chars: int = Field(20, ge=1)
    keyword_radius_min: float = Field(18.0, gt=0)
    keyword_radius_max: float = Field(40.0, gt=0)
    keyword_radius_scale: float = Field(1.4, ge=0)
    root_radius_bonus: float = Field(4.0, ge=0)
    article_radius: float = Field(8.0, gt=0)
    sentiment_threshold: float = Field(0.3, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _validate_radius_bounds(self) -> "GraphStyleConfig":
        if self.keyword_radius_min > self.keyword_radius_max:
            msg = "graph.keyword_radius_min cannot exceed graph.keyword_radius_max"
            raise ValueError(msg)
        return self


class SimulationConfig(_FrozenModel):
    """Force simulation tuning parameters."""

    link_distances: Dict[str, float] = Field(
        default_factory=lambda: {"cooccurrence": 120.0, "similarity": 120.0, "has_keyword": 80.0}
    )
    charge_strength: float = Field(-200.0, ge=-300.0, le=-200.0)
    exact_repulsion_max_nodes: int = Field(200, ge=0)
    barnes_hut_theta: float = Field(0.9, gt=0.0, le=2.0)
    collision_padding: float = Field(6.0, ge=0.0)
    collision_iterations: int = Field(1, ge=1)
    damping: float = Field(0.6, gt=0.0, lt=1.0)
    alpha_decay: float = Field(0.0228, gt=0.0, lt=1.0)
    alpha_min: float = Field(0.001, gt=0.0, lt=1.0)
    alpha_floor: float = Field(0.0001, ge=0.0, lt=1.0)
    drag_alpha_target: float = Field(0.3, gt=0.0, le=1.0)
    rest_speed: float = Field(0.001, ge=0.0)

    @field_validator("link_distances")
    @classmethod
    def _validate_link_distances(cls, values: Dict[str, float]) -> Dict[str, float]:
        required = {"cooccurrence", "similarity", "has_keyword"}
        missing = required - set(values)
        if missing:
            msg = f"simulation.link_distances is missing entries for: {', '.join(sorted(missing))}"
            raise ValueError(msg)
        for edge_type, distance in values.items():
            if distance <= 0:
                msg = f"simulation.link_distances['{edge_type}'] must be positive"
                raise ValueError(msg)
        return dict(values)

    @model_validator(mode="after")
    def _validate_alpha_range(self) -> "SimulationConfig":
        if self.alpha_floor >= self.alpha_min:
            msg = "simulation.alpha_floor must be below simulation.alpha_min"
            raise ValueError(msg)
        return self


class InteractionConfig(_FrozenModel):
    """Pointer interaction and zoom limits."""

    scale_min: float = Field(0.2, gt=0)
    scale_max: float = Field(4.0, gt=0)
    constrained_max_width: float = Field(640.0, ge=0)
    wheel_zoom_step: float = Field(1.2, gt=1.0)

    @model_validator(mode="after")
    def _validate_scale_extent(self) -> "InteractionConfig":
        if self.scale_min > self.scale_max:
            msg = "interaction.scale_min cannot exceed interaction.scale_max"
            raise ValueError(msg)
        return self


class TimelineConfig(_FrozenModel):
    """Layout constants for the time-axis article view."""

    min_width: float = Field(800.0, gt=0)
    px_per_article: float = Field(20.0, gt=0)
    height: float = Field(340.0, gt=0)
    title_max_chars: int = Field(50, ge=1)
    max_tooltip_keywords: int = Field(5, ge=0)


class AppConfig(_FrozenModel):
    """Top-level application configuration composed from config.yaml."""

    api: APIConfig
    exploration: ExplorationConfig = Field(default_factory=ExplorationConfig)
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    graph: GraphStyleConfig = Field(default_factory=GraphStyleConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    interaction: InteractionConfig = Field(default_factory=InteractionConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        return REPO_ROOT / "config.yaml"


def _determine_env_file_path() -> Optional[Path]:
    """Return the path to the environment file if one should be loaded."""

    override = os.getenv("NEWSGRAPH_ENV_FILE")
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
        return None
    if DEFAULT_ENV_FILE.exists():
        return DEFAULT_ENV_FILE
    return None


def _strip_inline_comment(value: str) -> str:
    """Remove inline comments from an environment value when unquoted."""

    comment_index = value.find("#")
    if comment_index == -1:
        return value
    return value[:comment_index].rstrip()


def _load_env_file(path: Path) -> None:
    """Populate ``os.environ`` with values read from a ``.env`` file."""

    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.lower().startswith("export "):
                    line = line[7:].lstrip()
                if "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                key = key.strip()
                if not key:
                    continue
                existing_value = os.environ.get(key)
                if existing_value is not None and existing_value.strip() != "":
                    continue
                value = raw_value.strip()
                if not value:
                    os.environ[key] = ""
                    continue
                if value[0] in {'"', "'"} and value[-1] == value[0]:
                    os.environ[key] = value[1:-1]
                    continue
                os.environ[key] = _strip_inline_comment(value)
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)


def _resolve_api_base_url_from_env() -> Optional[str]:
    """Return the first non-empty API base URL found in supported variables."""

    for key in API_BASE_URL_ENV_VARS:
        raw = os.getenv(key)
        if raw and raw.strip():
            return raw.strip().rstrip("/")
    return None


def _apply_environment_overrides(raw_content: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment-based overrides into the raw configuration mapping.

    Args:
        raw_content: Parsed YAML configuration prior to Pydantic validation.

    Returns:
        Dict[str, Any]: Configuration mapping with environment overrides applied.
    """

    env_file_path = _determine_env_file_path()
    if env_file_path is not None:
        _load_env_file(env_file_path)

    base_url = _resolve_api_base_url_from_env()
    if base_url:
        api_section = raw_content.setdefault("api", {})
        api_section["base_url"] = base_url
        LOGGER.info("API base URL overridden from environment: %s", base_url)
    return raw_content


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML content from disk.

    Args:
        path: Location of the YAML file.

    Returns:
        Dict[str, Any]: Parsed YAML content.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        LOGGER.error("Configuration file missing at %s", path)
        raise ConfigError("Configuration file not found") from exc
    except yaml.YAMLError as exc:
        LOGGER.error("Invalid YAML syntax in %s", path)
        raise ConfigError("Invalid YAML syntax") from exc
    if not isinstance(data, dict):
        LOGGER.error("Configuration root must be a mapping: %s", path)
        raise ConfigError("Configuration root must be a mapping")
    return data


@lru_cache(maxsize=1)
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from YAML.

    Args:
        path: Optional override path to the YAML file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated.
    """
    config_path = path or AppConfig.default_path()
    raw_content = _read_yaml(config_path)
    raw_content = _apply_environment_overrides(raw_content)
    try:
        return AppConfig(**raw_content)
    except ValidationError as exc:
        LOGGER.error("Invalid configuration values: %s", exc)
        raise ConfigError("Configuration validation failed") from exc
