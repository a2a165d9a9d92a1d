"""
Configuration management for blackdot.

Precedence: env vars (BLACKDOT_*) > .env file > config.yaml > defaults

Config file: ~/.config/blackdot/config.yaml
Hooks:       ~/.config/blackdot/hooks/<point>/ and ~/.config/blackdot/hooks.json

Feature state is persisted under the `features:` key of config.yaml.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

ENV_PREFIX = "BLACKDOT_"

# Known config keys that can be set in config.yaml
CONFIG_KEYS = {
    "hooks_dir", "hooks_file", "hooks_disabled", "hooks_verbose",
    "hooks_fail_fast", "hooks_timeout", "log_level", "host", "port",
}


def _resolve_config_dir() -> Path:
    """Resolve the config directory from env or XDG default, before Settings init."""
    raw = os.environ.get(f"{ENV_PREFIX}CONFIG_DIR", "")
    if raw:
        return Path(raw).expanduser().resolve()
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return (base / "blackdot").resolve()


def get_config_path(config_dir: Path) -> Path:
    """Get the config.yaml path for a config directory."""
    return config_dir / "config.yaml"


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load config.yaml from the config directory."""
    config_file = get_config_path(config_dir)
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"config.yaml is not a dict, ignoring: {config_file}")
            return {}
        return data
    except Exception as e:
        logger.warning(f"Error loading config.yaml: {e}")
        return {}


def save_yaml_config(config_dir: Path, data: dict[str, Any]) -> Path:
    """Write config values to config.yaml."""
    config_file = get_config_path(config_dir)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return config_file


def load_feature_state(config_dir: Path) -> dict[str, bool]:
    """Read persisted feature flags from the `features:` mapping."""
    raw = _load_yaml_config(config_dir).get("features") or {}
    if not isinstance(raw, dict):
        logger.warning("config.yaml `features` is not a mapping, ignoring")
        return {}

    state: dict[str, bool] = {}
    for name, value in raw.items():
        if not isinstance(value, bool):
            logger.warning(f"Ignoring non-boolean feature flag {name}={value!r}")
            continue
        state[str(name)] = value
    return state


def save_feature_state(config_dir: Path, state: dict[str, bool]) -> Path:
    """Persist feature flags, keeping every other key in config.yaml."""
    data = _load_yaml_config(config_dir)
    data["features"] = dict(sorted(state.items()))
    return save_yaml_config(config_dir, data)


class Settings(BaseSettings):
    """blackdot configuration. Precedence: env vars > .env > config.yaml > defaults."""

    config_dir: Path = Field(
        default_factory=_resolve_config_dir,
        description="Directory holding config.yaml, hooks/ and hooks.json",
    )

    # Hooks
    hooks_dir: Optional[Path] = Field(
        default=None,
        description="Root of file-based hooks (defaults to config_dir/hooks)",
    )
    hooks_file: Optional[Path] = Field(
        default=None,
        description="Declarative hook document (defaults to config_dir/hooks.json)",
    )
    hooks_disabled: bool = Field(
        default=False,
        description="Disable all hook execution (BLACKDOT_HOOKS_DISABLED)",
    )
    hooks_verbose: bool = Field(default=False, description="Log hook output")
    hooks_fail_fast: bool = Field(
        default=False,
        description="Stop a hook point run at the first hard failure",
    )
    hooks_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Default per-hook timeout in seconds",
    )

    # Management server
    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=3380, description="Server port")

    # Logging
    log_level: str = Field(default="WARNING", description="Log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    model_config = {
        "env_prefix": ENV_PREFIX,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="before")
    @classmethod
    def _inject_yaml_config(cls, data: Any) -> Any:
        """Inject config.yaml values as fallbacks below env vars and .env."""
        if not isinstance(data, dict):
            data = {}

        config_dir = data.get("config_dir")
        config_dir = Path(config_dir) if config_dir else _resolve_config_dir()

        yaml_config = _load_yaml_config(config_dir)

        # Inject YAML values only where not already set (env/explicit take priority)
        for key, value in yaml_config.items():
            if key not in CONFIG_KEYS:
                continue
            if key not in data or data[key] is None:
                env_val = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
                if env_val is None:
                    data[key] = value

        return data

    @property
    def hooks_path(self) -> Path:
        """Root directory of file-based hooks."""
        if self.hooks_dir:
            return self.hooks_dir
        return self.config_dir / "hooks"

    @property
    def hooks_document_path(self) -> Path:
        """Path of the declarative hooks.json document."""
        if self.hooks_file:
            return self.hooks_file
        return self.config_dir / "hooks.json"

    @property
    def hooks_enabled(self) -> bool:
        return not self.hooks_disabled


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
