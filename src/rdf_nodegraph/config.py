"""
Configuration for rdf-nodegraph.

Provides:
- Translation settings (type and namespace auto-registration, references)
- Access settings used to build the store's AccessPolicy
- JSON load/save and environment variable overrides
- Configuration validation
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from rdf_nodegraph.storage.base import AccessPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "RDF_NODEGRAPH_"
CONFIG_FILENAME = "nodegraph.json"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


class ConfigValidationError(Exception):
    """Configuration validation error."""
    pass


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigValidationError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class TranslationConfig:
    """How incoming RDF is translated into store mutations."""
    auto_register_types: bool = True
    auto_register_namespaces: bool = True
    supports_references: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auto_register_types": self.auto_register_types,
            "auto_register_namespaces": self.auto_register_namespaces,
            "supports_references": self.supports_references,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationConfig":
        return cls(
            auto_register_types=data.get("auto_register_types", True),
            auto_register_namespaces=data.get("auto_register_namespaces", True),
            supports_references=data.get("supports_references", True),
        )


@dataclass
class AccessConfig:
    """Property and type names clients may not modify."""
    protected_names: List[str] = field(default_factory=list)
    protected_prefixes: List[str] = field(default_factory=list)
    read_only_paths: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protected_names": list(self.protected_names),
            "protected_prefixes": list(self.protected_prefixes),
            "read_only_paths": list(self.read_only_paths),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessConfig":
        return cls(
            protected_names=list(data.get("protected_names", [])),
            protected_prefixes=list(data.get("protected_prefixes", [])),
            read_only_paths=list(data.get("read_only_paths", [])),
        )

    def to_policy(self) -> AccessPolicy:
        return AccessPolicy(
            protected_names=frozenset(self.protected_names),
            protected_prefixes=frozenset(self.protected_prefixes),
            read_only_paths=frozenset(self.read_only_paths),
        )


@dataclass
class NodeGraphConfig:
    """
    Top-level configuration.

    Attributes:
        base_uri: URI prefix of every resource (``/`` maps to ``<base_uri>/``)
        default_child_limit: Children listed on GET when no Limit header is
            sent (0 = count only, -1 = all)
        log_level: Level applied to the ``rdf_nodegraph`` logger
    """
    base_uri: str = "http://localhost:8080/rest"
    default_child_limit: int = 0
    log_level: str = "INFO"
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    access: AccessConfig = field(default_factory=AccessConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_uri": self.base_uri,
            "default_child_limit": self.default_child_limit,
            "log_level": self.log_level,
            "translation": self.translation.to_dict(),
            "access": self.access.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeGraphConfig":
        return cls(
            base_uri=data.get("base_uri", "http://localhost:8080/rest"),
            default_child_limit=data.get("default_child_limit", 0),
            log_level=data.get("log_level", "INFO"),
            translation=TranslationConfig.from_dict(data.get("translation", {})),
            access=AccessConfig.from_dict(data.get("access", {})),
        )

    def save(self, path: Path) -> None:
        """Save configuration as JSON; ``path`` may be a file or a directory."""
        config_file = path / CONFIG_FILENAME if path.is_dir() else path
        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> "NodeGraphConfig":
        """Load configuration from JSON, falling back to defaults when absent."""
        config_file = path / CONFIG_FILENAME if path.is_dir() else path
        if config_file.exists():
            with open(config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.from_dict(data)
        return cls()

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> "NodeGraphConfig":
        """
        Override settings from ``RDF_NODEGRAPH_*`` environment variables.

        Recognized: BASE_URI, DEFAULT_CHILD_LIMIT, LOG_LEVEL,
        AUTO_REGISTER_TYPES, AUTO_REGISTER_NAMESPACES, SUPPORTS_REFERENCES.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name)

        if get("BASE_URI"):
            self.base_uri = get("BASE_URI")
        if get("DEFAULT_CHILD_LIMIT"):
            raw = get("DEFAULT_CHILD_LIMIT")
            try:
                self.default_child_limit = int(raw)
            except ValueError:
                raise ConfigValidationError(
                    f"{ENV_PREFIX}DEFAULT_CHILD_LIMIT must be an integer, got {raw!r}"
                ) from None
        if get("LOG_LEVEL"):
            self.log_level = get("LOG_LEVEL").upper()
        for name in ("auto_register_types", "auto_register_namespaces", "supports_references"):
            raw = get(name.upper())
            if raw:
                setattr(self.translation, name, _parse_bool(ENV_PREFIX + name.upper(), raw))
        return self

    @classmethod
    def from_env(cls, path: Optional[Path] = None) -> "NodeGraphConfig":
        """Defaults (or the JSON file at ``path``) overridden by the environment."""
        config = cls.load(path) if path is not None else cls()
        config.apply_env()
        validate_or_raise(config)
        return config


def validate(config: NodeGraphConfig) -> List[str]:
    """
    Validate configuration.

    Returns list of error messages (empty if valid).
    """
    errors = []

    if not config.base_uri or "://" not in config.base_uri:
        errors.append(f"base_uri must be an absolute URI: {config.base_uri!r}")
    elif "#" in config.base_uri or "?" in config.base_uri:
        errors.append("base_uri cannot contain a fragment or query")

    if config.default_child_limit < -1:
        errors.append("default_child_limit must be -1 (all), 0 (count only) or positive")

    if logging.getLevelName(config.log_level.upper()) == f"Level {config.log_level.upper()}":
        errors.append(f"Invalid log_level: {config.log_level}")

    return errors


def validate_or_raise(config: NodeGraphConfig) -> None:
    errors = validate(config)
    if errors:
        raise ConfigValidationError("; ".join(errors))


def configure_logging(config: NodeGraphConfig) -> None:
    """Apply the configured level to the package logger."""
    logging.getLogger("rdf_nodegraph").setLevel(config.log_level.upper())
    logger.debug(f"Log level set to {config.log_level.upper()}")
