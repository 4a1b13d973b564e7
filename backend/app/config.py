"""Configuration loader for the papergraph backend."""
from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from backend.app.contracts import NodeGroup

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

REGISTRY_ENV_VAR = "PAPERGRAPH_DOCUMENT_REGISTRY"
ORIGINS_ENV_VAR = "PAPERGRAPH_ALLOWED_ORIGINS"


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


class PipelineConfig(_FrozenModel):
    """Application-level version information."""

    version: str = Field(..., min_length=1)


class BaseWeightsConfig(_FrozenModel):
    """Initial node weight per group before merge increments."""

    paper: float = Field(10, ge=0)
    author: float = Field(5, ge=0)
    institute: float = Field(6, ge=0)
    concept: float = Field(3, ge=0)
    method: float = Field(3, ge=0)

    def for_group(self, group: NodeGroup) -> float:
        """Return the base weight configured for ``group``."""

        return float(getattr(self, group.value.lower()))


class GraphBuilderConfig(_FrozenModel):
    """Projection limits applied when building the document graph."""

    concept_limit: int = Field(5, ge=0)
    method_limit: int = Field(3, ge=0)
    base_weights: BaseWeightsConfig = Field(default_factory=BaseWeightsConfig)
    institute_base_weight: float = Field(10, ge=0)


class LayoutConfig(_FrozenModel):
    """Force simulation parameters."""

    link_distance: float = Field(100.0, gt=0)
    charge_strength: float = Field(-200.0)
    collide_margin: float = Field(5.0, ge=0)
    collide_strength: float = Field(1.0, ge=0.0, le=1.0)
    center_strength: float = Field(1.0, ge=0.0, le=1.0)
    alpha_min: float = Field(0.001, gt=0.0, lt=1.0)
    alpha_decay: Optional[float] = Field(default=None, gt=0.0, lt=1.0)
    velocity_decay: float = Field(0.4, ge=0.0, le=1.0)
    drag_alpha_target: float = Field(0.3, ge=0.0, le=1.0)
    tick_interval_ms: float = Field(16.0, gt=0)
    max_ticks: int = Field(600, ge=1)
    seed: int = 0
    initial_radius: float = Field(10.0, gt=0)

    @property
    def resolved_alpha_decay(self) -> float:
        """Return the decay factor, deriving it from ``alpha_min`` when unset.

        The derived value cools ``alpha`` from 1 to ``alpha_min`` in 300 ticks.
        """

        if self.alpha_decay is not None:
            return self.alpha_decay
        return 1.0 - self.alpha_min ** (1.0 / 300.0)


class OpacityConfig(_FrozenModel):
    """Opacity levels used by the highlight pass."""

    node_default: float = Field(1.0, ge=0.0, le=1.0)
    node_dimmed: float = Field(0.1, ge=0.0, le=1.0)
    edge_default: float = Field(0.6, ge=0.0, le=1.0)
    edge_highlighted: float = Field(0.8, ge=0.0, le=1.0)
    edge_dimmed: float = Field(0.05, ge=0.0, le=1.0)


class InteractionConfig(_FrozenModel):
    """Pan, zoom and pointer thresholds."""

    zoom_min: float = Field(0.1, gt=0)
    zoom_max: float = Field(4.0, gt=0)
    wheel_sensitivity: float = Field(0.002, gt=0)
    click_threshold_px: float = Field(3.0, ge=0)
    opacity: OpacityConfig = Field(default_factory=OpacityConfig)

    @model_validator(mode="after")
    def _validate_zoom_range(self) -> "InteractionConfig":
        if self.zoom_min > self.zoom_max:
            msg = "interaction.zoom_min cannot exceed interaction.zoom_max"
            raise ValueError(msg)
        return self


class UIGraphDefaultsConfig(_FrozenModel):
    """Default visualization controls for the graph explorer."""

    groups: List[NodeGroup] = Field(default_factory=lambda: list(NodeGroup))
    width: float = Field(960.0, gt=0)
    height: float = Field(640.0, gt=0)

    @field_validator("groups", mode="before")
    @classmethod
    def _parse_groups(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [NodeGroup.parse(item) if isinstance(item, str) else item for item in value]
        return value


class UIConfig(_FrozenModel):
    """UI-specific configuration values."""

    document_registry_path: str = Field(..., min_length=1)
    graph_defaults: UIGraphDefaultsConfig = Field(default_factory=UIGraphDefaultsConfig)
    allowed_origins: List[str] = Field(default_factory=list)


class AppConfig(_FrozenModel):
    """Top-level application configuration composed from config.yaml."""

    pipeline: PipelineConfig
    graph: GraphBuilderConfig = Field(default_factory=GraphBuilderConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    interaction: InteractionConfig = Field(default_factory=InteractionConfig)
    ui: UIConfig

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        return REPO_ROOT / "config.yaml"


def _determine_env_file_path() -> Optional[Path]:
    """Return the path to the environment file if one should be loaded."""

    override = os.getenv("PAPERGRAPH_ENV_FILE")
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
        return None
    if DEFAULT_ENV_FILE.exists():
        return DEFAULT_ENV_FILE
    return None


_ENV_LINE = re.compile(r"^(?:export\s+)?(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*=\s*(?P<value>.*)$")


def _parse_env_value(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] in "\"'" and value[-1] == value[0]:
        return value[1:-1]
    return value.split("#", 1)[0].rstrip()


def _read_env_file(path: Path) -> Dict[str, str]:
    """Return ``KEY=value`` pairs from a ``.env`` file, skipping comments."""

    entries: Dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        match = _ENV_LINE.match(line.strip())
        if match is not None:
            entries[match.group("key")] = _parse_env_value(match.group("value"))
    return entries


def _load_env_file(path: Path) -> None:
    """Export ``.env`` entries that are not already set to a non-blank value."""

    try:
        entries = _read_env_file(path)
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)
        return
    for key, value in entries.items():
        if (os.environ.get(key) or "").strip():
            continue
        os.environ[key] = value


def _parse_origins(value: str) -> List[str]:
    """Split a comma or whitespace separated origin list, preserving order."""

    unique: List[str] = []
    for candidate in re.split(r"[,\s]+", value):
        candidate = candidate.strip()
        if candidate and candidate not in unique:
            unique.append(candidate)
    return unique


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

    ui_section = raw_content.setdefault("ui", {})
    registry_path = os.getenv(REGISTRY_ENV_VAR)
    if registry_path and registry_path.strip():
        ui_section["document_registry_path"] = registry_path.strip()
        LOGGER.info("Document registry path overridden from environment")
    origins = os.getenv(ORIGINS_ENV_VAR)
    if origins:
        parsed = _parse_origins(origins)
        if parsed:
            ui_section["allowed_origins"] = parsed
            LOGGER.info("Allowed origins overridden from environment (count=%d)", len(parsed))
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
