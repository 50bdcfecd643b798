"""Configuration management built on top of the policy primitives."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .policies import Policies, load_policies

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "default.yaml"
SETTINGS_ENV_PREFIX = "BUSINESS_DEDUPE_SETTINGS__"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries."""

    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration file '{path}' must contain a mapping at the top level")
    return loaded


def _apply_env_overrides(base: Dict[str, Any]) -> Dict[str, Any]:
    """Apply overrides from BUSINESS_DEDUPE_SETTINGS__* environment variables."""

    result = dict(base)
    for key, value in os.environ.items():
        if not key.startswith(SETTINGS_ENV_PREFIX):
            continue
        path = [part for part in key[len(SETTINGS_ENV_PREFIX) :].lower().split("__") if part]
        if not path:
            continue
        cursor = result
        for part in path[:-1]:
            nested = cursor.get(part)
            if not isinstance(nested, dict):
                nested = {}
            else:
                nested = dict(nested)
            cursor[part] = nested
            cursor = nested
        cursor[path[-1]] = value
    return result


class Settings(BaseSettings):
    """Primary configuration object for the deduplication engine.

    Precedence (highest first): explicit kwargs, environment variables prefixed
    with ``BUSINESS_DEDUPE_`` (handled by :class:`BaseSettings`), nested
    overrides via ``BUSINESS_DEDUPE_SETTINGS__`` variables, environment-specific
    YAML (e.g. ``production.yaml``), the default YAML file, and finally the
    class defaults. Policy values additionally honour
    ``BUSINESS_DEDUPE_POLICY__`` overrides.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUSINESS_DEDUPE_",
        validate_assignment=True,
        extra="ignore",
    )

    environment: Literal["development", "testing", "production"] = Field(
        default="development",
        description="Active runtime environment",
    )
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR)
    log_level: str = Field(default="INFO")
    log_dir: Optional[Path] = Field(
        default=None,
        description="Directory for the rotating log file; stderr only when unset.",
    )
    policies: Policies

    @model_validator(mode="before")
    @classmethod
    def _bootstrap_from_files(cls, values: Any) -> Any:
        """Load YAML files and merge with provided overrides."""

        if not isinstance(values, dict):
            return values
        config_dir = Path(values.get("config_dir") or DEFAULT_CONFIG_DIR)
        environment = values.get("environment") or os.getenv(
            "BUSINESS_DEDUPE_ENVIRONMENT", "development"
        )
        base_config = _load_yaml_file(config_dir / "default.yaml")
        env_config = _load_yaml_file(config_dir / f"{environment}.yaml")
        hydrated = _apply_env_overrides(_deep_merge(base_config, env_config))

        combined = _deep_merge(hydrated, {k: v for k, v in values.items() if v is not None})
        policies_data = combined.pop("policies", None)
        if isinstance(policies_data, Policies):
            combined["policies"] = policies_data
            return combined
        combined["policies"] = load_policies(policies_data or {})
        return combined

    @property
    def policy_version(self) -> str:
        return self.policies.policy_version

    @property
    def log_file(self) -> Optional[Path]:
        if self.log_dir is None:
            return None
        return self.log_dir / "business_dedupe.log"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a singleton settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings", "PROJECT_ROOT", "DEFAULT_CONFIG_DIR"]
