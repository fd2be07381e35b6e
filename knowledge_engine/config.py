"""Configuration management for the Knowledge Graph Engine.

This module provides the engine configuration tree, partial-update merging
with validation, and loading from YAML or JSON configuration files.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from knowledge_engine.exceptions import ConfigurationError


DEFAULT_CONCEPT_VOCABULARY = ["design", "pattern", "user", "interface", "system"]
DEFAULT_TAG_VOCABULARY = ["design", "user", "interface", "learning", "pattern", "system"]
DEFAULT_TRUSTED_SOURCES = ["system", "verified", "official"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _check_unit(section: str, name: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ConfigurationError(f"{section}.{name} must be between 0.0 and 1.0")


def _check_positive(section: str, name: str, value: Optional[float]) -> None:
    if value is not None and value <= 0:
        raise ConfigurationError(f"{section}.{name} must be positive")


@dataclass
class RelationshipMappingConfig:
    """Traversal and relationship-reasoning settings."""

    enabled: bool = True
    max_depth: int = 5
    similarity_threshold: float = 0.7
    inference_enabled: bool = True
    decay_factor: float = 0.8

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ConfigurationError("relationship_mapping.max_depth must be at least 1")
        _check_unit("relationship_mapping", "similarity_threshold", self.similarity_threshold)
        _check_unit("relationship_mapping", "decay_factor", self.decay_factor)


@dataclass
class SemanticUnderstandingConfig:
    """Semantic analysis pipeline settings."""

    enabled: bool = True
    context_awareness: bool = True
    entity_recognition: bool = True
    sentiment_analysis: bool = True
    cache_size: int = 1024
    cache_ttl: Optional[float] = None
    concept_vocabulary: List[str] = field(
        default_factory=lambda: list(DEFAULT_CONCEPT_VOCABULARY)
    )
    tag_vocabulary: List[str] = field(default_factory=lambda: list(DEFAULT_TAG_VOCABULARY))

    def __post_init__(self) -> None:
        _check_positive("semantic_understanding", "cache_size", self.cache_size)
        _check_positive("semantic_understanding", "cache_ttl", self.cache_ttl)


@dataclass
class InferenceEngineConfig:
    """Inference engine settings."""

    enabled: bool = True
    reasoning_depth: int = 3
    confidence_threshold: float = 0.6
    max_inferences: int = 10
    damping_factor: float = 0.8
    chain_confidence: float = 0.7
    fallback_confidence: float = 0.6
    cache_size: int = 512
    cache_ttl: Optional[float] = None

    def __post_init__(self) -> None:
        if self.reasoning_depth < 1:
            raise ConfigurationError("inference_engine.reasoning_depth must be at least 1")
        if self.max_inferences < 1:
            raise ConfigurationError("inference_engine.max_inferences must be at least 1")
        for name in ("confidence_threshold", "damping_factor", "chain_confidence",
                     "fallback_confidence"):
            _check_unit("inference_engine", name, getattr(self, name))
        _check_positive("inference_engine", "cache_size", self.cache_size)
        _check_positive("inference_engine", "cache_ttl", self.cache_ttl)


@dataclass
class GraphOptimizationConfig:
    """Background maintenance settings.

    The two eviction thresholds are independent: a node is evicted when it is
    older than ``retention_window`` and its importance is below
    ``stale_importance_threshold``, or when its importance is below
    ``importance_threshold`` whatever its age.
    """

    enabled: bool = True
    cleanup_interval: float = 300.0  # 5 minutes
    max_nodes: int = 10000
    compression_enabled: bool = True
    retention_window: float = 86400.0  # 24 hours
    stale_importance_threshold: float = 0.3
    importance_threshold: float = 0.2

    def __post_init__(self) -> None:
        _check_positive("graph_optimization", "cleanup_interval", self.cleanup_interval)
        _check_positive("graph_optimization", "retention_window", self.retention_window)
        if self.max_nodes < 1:
            raise ConfigurationError("graph_optimization.max_nodes must be at least 1")
        _check_unit("graph_optimization", "stale_importance_threshold",
                    self.stale_importance_threshold)
        _check_unit("graph_optimization", "importance_threshold", self.importance_threshold)


_SECTIONS = {
    "relationship_mapping": RelationshipMappingConfig,
    "semantic_understanding": SemanticUnderstandingConfig,
    "inference_engine": InferenceEngineConfig,
    "graph_optimization": GraphOptimizationConfig,
}


def _coerce(section: str, name: str, expected: Any, value: Any) -> Any:
    """Check ``value`` against a field annotation, returning the value to store."""
    where = f"{section}.{name}" if section else name
    optional = expected == Optional[float]
    if optional and value is None:
        return None
    if expected is bool:
        if not isinstance(value, bool):
            raise ConfigurationError(f"{where} must be a boolean", {"value": value})
        return value
    if expected is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{where} must be an integer", {"value": value})
        return value
    if expected is float or optional:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"{where} must be a number", {"value": value})
        return float(value)
    if expected == List[str]:
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            raise ConfigurationError(f"{where} must be a list of strings", {"value": value})
        return list(value)
    if expected is str:
        if not isinstance(value, str):
            raise ConfigurationError(f"{where} must be a string", {"value": value})
        return value
    return value


def _section_from_dict(name: str, cls: type, data: Any, base: Any = None) -> Any:
    if not isinstance(data, dict):
        raise ConfigurationError(f"{name} must be a mapping", {"value": data})
    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ConfigurationError(
            f"Unknown {name} option(s): {', '.join(sorted(map(str, unknown)))}",
            {"section": name},
        )
    values = {} if base is None else {f.name: getattr(base, f.name) for f in fields(cls)}
    for key, value in data.items():
        values[key] = _coerce(name, key, known[key].type, value)
    return cls(**values)


@dataclass
class EngineConfig:
    """Complete engine configuration."""

    relationship_mapping: RelationshipMappingConfig = field(
        default_factory=RelationshipMappingConfig
    )
    semantic_understanding: SemanticUnderstandingConfig = field(
        default_factory=SemanticUnderstandingConfig
    )
    inference_engine: InferenceEngineConfig = field(default_factory=InferenceEngineConfig)
    graph_optimization: GraphOptimizationConfig = field(default_factory=GraphOptimizationConfig)
    trusted_sources: List[str] = field(default_factory=lambda: list(DEFAULT_TRUSTED_SOURCES))
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log_level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain nested dictionary."""
        data: Dict[str, Any] = {}
        for name in _SECTIONS:
            section = getattr(self, name)
            values = {}
            for f in fields(section):
                value = getattr(section, f.name)
                values[f.name] = list(value) if isinstance(value, list) else value
            data[name] = values
        data["trusted_sources"] = list(self.trusted_sources)
        data["log_level"] = self.log_level
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create a config from a (possibly partial) dictionary over defaults."""
        return cls().merged(data)

    def merged(self, partial: Dict[str, Any]) -> "EngineConfig":
        """
        Return a new config with ``partial`` deep-merged over this one.

        Unspecified fields keep their current values.

        Raises:
            ConfigurationError: If ``partial`` is not a mapping, names an
                unknown option, or carries a value of the wrong type.
        """
        if not isinstance(partial, dict):
            raise ConfigurationError("Configuration update must be a mapping",
                                     {"value": partial})
        allowed = set(_SECTIONS) | {"trusted_sources", "log_level"}
        unknown = set(partial) - allowed
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration key(s): {', '.join(sorted(map(str, unknown)))}"
            )

        values: Dict[str, Any] = {}
        for name, section_cls in _SECTIONS.items():
            current = getattr(self, name)
            if name in partial:
                values[name] = _section_from_dict(name, section_cls, partial[name], current)
            else:
                values[name] = current
        values["trusted_sources"] = (
            _coerce("", "trusted_sources", List[str], partial["trusted_sources"])
            if "trusted_sources" in partial
            else list(self.trusted_sources)
        )
        values["log_level"] = (
            _coerce("", "log_level", str, partial["log_level"]).upper()
            if "log_level" in partial
            else self.log_level
        )
        return EngineConfig(**values)


class ConfigLoader:
    """Configuration loader with support for YAML and JSON formats.

    Supports:
    - Loading from YAML and JSON files
    - Validation through EngineConfig
    - Default value fallback for anything the file leaves out
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize the configuration loader.

        Args:
            config_path: Path to configuration file (YAML or JSON).
                        If None, uses default configuration only.
        """
        self.config_path = Path(config_path) if config_path else None
        self._config = EngineConfig()
        self._load_config()

    def _load_config(self) -> None:
        self._config = EngineConfig()
        if self.config_path and self.config_path.exists():
            loaded = self._load_from_file(self.config_path)
            self._config = self._config.merged(loaded)

    def _load_from_file(self, path: Path) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file.

        Raises:
            ConfigurationError: If file format is unsupported or parsing fails
        """
        suffix = path.suffix.lower()

        try:
            with open(path, "r", encoding="utf-8") as f:
                if suffix in [".yaml", ".yml"]:
                    return yaml.safe_load(f) or {}
                elif suffix == ".json":
                    return json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported configuration format: {suffix}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to parse configuration file: {e}")

    @property
    def config(self) -> EngineConfig:
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-separated key (e.g. "inference_engine.enabled")."""
        value: Any = self._config.to_dict()
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def __repr__(self) -> str:
        return f"ConfigLoader(config_path={self.config_path})"
