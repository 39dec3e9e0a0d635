"""Configuration loading from YAML and environment.

The config file names the state list, declares metadata kinds and sets the
comparator policy and logging. Every value can be overridden by environment
variables (RESOLVER_*, LOGGING_*), and ``${VAR}`` / ``$VAR`` strings in the
YAML are replaced from the environment.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from issue_states.errors import StateFileError

# Injected by load_config so substitution reads a consistent environment
_current_env: dict[str, str] = {}


class ResolverConfig(BaseSettings):
    """State list location and comparator policy."""

    model_config = SettingsConfigDict(env_prefix="RESOLVER_", extra="ignore")

    states_file: Path | None = Field(default=None, description="YAML file with the state list")
    # Undefined operator/type combinations: raise (strict) or count as no match
    strict_types: bool = Field(default=True, description="Raise on operators undefined for a value type")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metadata_schema: dict[str, Any] = Field(
        default_factory=dict,
        description="Kind per metadata identifier, e.g. {priority: {kind: ordinal, levels: [low, high]}}",
    )


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    A missing file yields the defaults. A relative states_file is taken
    relative to the config file.
    """
    global _current_env
    import os

    _current_env = dict(os.environ)

    path = config_path or Path("config.yaml")
    if not path.is_file():
        return AppConfig()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise StateFileError(f"Invalid config {path}: {e}") from e
    if not isinstance(raw, dict):
        raise StateFileError(f"Invalid config {path}: expected a mapping")
    raw = _substitute_env(raw)

    resolver = ResolverConfig(**(raw.get("resolver") or {}))
    if resolver.states_file is not None and not resolver.states_file.is_absolute():
        resolver = resolver.model_copy(update={"states_file": path.parent / resolver.states_file})
    logging = LoggingConfig(**(raw.get("logging") or {}))

    return AppConfig(
        resolver=resolver,
        logging=logging,
        metadata_schema=raw.get("metadata_schema") or {},
    )
