#!/usr/bin/env python3
"""
Configuration for rule generation.

Values are layered, lowest to highest precedence: built-in defaults,
``~/.rulegen/config.yaml``, ``<project>/.rulegen.yaml``, ``RULEGEN_*``
environment variables, then command-line flags.
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .budgeter import token_ceiling

logger = logging.getLogger(__name__)

USER_CONFIG_PATH = Path.home() / ".rulegen" / "config.yaml"
PROJECT_CONFIG_NAME = ".rulegen.yaml"

ENV_PREFIX = "RULEGEN_"


class ConfigError(Exception):
    """Raised when an explicitly supplied configuration value is invalid."""
    pass


@dataclass(frozen=True)
class GeneratorConfig:
    """Settings for one generation run."""
    model: str = "gemini-2.5-flash-lite"
    max_files: int = 50
    max_rules: int = 8
    context_limit: int = 900_000  # Headroom below the 1M window
    prompt_reserve: int = 10_000
    max_output_tokens: int = 16384
    temperature: float = 0.3
    timeout_seconds: float = 120.0
    format: str = "cursor"
    structured_output: bool = False

    @property
    def token_ceiling(self) -> int:
        return token_ceiling(self.context_limit, self.prompt_reserve, self.max_output_tokens)

    def with_overrides(self, **overrides: Any) -> "GeneratorConfig":
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(values) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        config = replace(self, **values)
        config.validate()
        return config

    def validate(self) -> None:
        if self.max_files < 0:
            raise ConfigError(f"max_files must be >= 0, got {self.max_files}")
        if self.max_rules < 1:
            raise ConfigError(f"max_rules must be >= 1, got {self.max_rules}")
        if self.timeout_seconds <= 0:
            raise ConfigError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if not self.model:
            raise ConfigError("model must not be empty")


def _coerce(name: str, raw: Any) -> Any:
    """Convert a raw YAML/env value to the type of the named field."""
    field_type = {f.name: f.type for f in fields(GeneratorConfig)}[name]
    if field_type in (bool, "bool"):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("true", "1", "yes", "on")
    if field_type in (int, "int"):
        return int(raw)
    if field_type in (float, "float"):
        return float(raw)
    return str(raw)


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Read known keys from a YAML config file. Problems are logged, not raised."""
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {path}: expected a mapping at top level")
        return {}

    known = {f.name for f in fields(GeneratorConfig)}
    values = {}
    for key, raw in data.items():
        key = str(key).replace("-", "_")
        if key not in known:
            logger.warning(f"Ignoring unknown config key '{key}' in {path}")
            continue
        try:
            values[key] = _coerce(key, raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid value for '{key}' in {path}: {raw!r}")
    return values


def _load_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    values = {}
    for f in fields(GeneratorConfig):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is None or raw == "":
            continue
        try:
            values[f.name] = _coerce(f.name, raw)
        except ValueError:
            logger.warning(f"Ignoring invalid {ENV_PREFIX}{f.name.upper()}={raw!r}")
    return values


def load_config(project_path: Optional[Path] = None,
                user_config: Optional[Path] = None,
                environ: Optional[Dict[str, str]] = None) -> GeneratorConfig:
    """Build the effective configuration from files and environment.

    Args:
        project_path: Project root to look for ``.rulegen.yaml`` in
        user_config: Override for the user-level config file path
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        GeneratorConfig with all layers applied
    """
    values: Dict[str, Any] = {}
    values.update(_load_yaml_file(user_config or USER_CONFIG_PATH))
    if project_path is not None:
        values.update(_load_yaml_file(Path(project_path) / PROJECT_CONFIG_NAME))
    values.update(_load_env(environ))

    config = replace(GeneratorConfig(), **values)
    try:
        config.validate()
    except ConfigError as e:
        logger.warning(f"Invalid configuration ({e}), using defaults")
        return GeneratorConfig()
    return config
