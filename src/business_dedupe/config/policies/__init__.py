"""Policy configuration primitives for the deduplication engine."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, Field, model_validator

from .matching import AddressWeights, BlockingPolicy, FieldWeights, MatchingPolicy
from .merge import CompletenessWeights, EnginePolicy, MergePolicy
from .normalization import NormalizationPolicy

POLICY_ENV_PREFIX = "BUSINESS_DEDUPE_POLICY__"


class Policies(BaseModel):
    """Root policy container."""

    policy_version: str = Field(default="2026-10-01")
    normalization: NormalizationPolicy = Field(default_factory=NormalizationPolicy)
    blocking: BlockingPolicy = Field(default_factory=BlockingPolicy)
    matching: MatchingPolicy = Field(default_factory=MatchingPolicy)
    merge: MergePolicy = Field(default_factory=MergePolicy)
    engine: EnginePolicy = Field(default_factory=EnginePolicy)

    @model_validator(mode="after")
    def _validate_policy_version(self) -> "Policies":
        if not self.policy_version:
            raise ValueError("policy_version must be provided")
        return self


def _ensure_nested_mapping(
    cursor: MutableMapping[str, Any], part: str, full_path: Sequence[str]
) -> MutableMapping[str, Any]:
    existing = cursor.get(part)
    if existing is None:
        next_cursor: MutableMapping[str, Any] = {}
        cursor[part] = next_cursor
        return next_cursor
    if not isinstance(existing, MutableMapping):
        raise ValueError(
            f"Cannot override policy path '{'/'.join(full_path)}' because segment "
            f"'{part}' resolves to a non-mapping value"
        )
    return existing


def _resolve_env_overrides(raw: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Apply ``BUSINESS_DEDUPE_POLICY__`` environment variable overrides.

    The remainder of the variable name is split on double underscores into a
    lowercased traversal path, creating intermediate mappings on demand. Values
    are JSON-decoded when possible (``0.85`` -> ``0.85``, ``true`` -> ``True``)
    and kept as raw strings otherwise.
    """

    for key, value in os.environ.items():
        if not key.startswith(POLICY_ENV_PREFIX):
            continue
        parts = [segment.lower() for segment in key[len(POLICY_ENV_PREFIX) :].split("__") if segment]
        if not parts:
            continue
        cursor: MutableMapping[str, Any] = raw
        for index, part in enumerate(parts[:-1], start=1):
            cursor = _ensure_nested_mapping(cursor, part, parts[:index])
        try:
            parsed = json.loads(value)
        except (TypeError, json.JSONDecodeError):
            parsed = value
        cursor[parts[-1]] = parsed
    return raw


def _deep_copy_mapping(source: Mapping[str, Any]) -> MutableMapping[str, Any]:
    copied: MutableMapping[str, Any] = {}
    for key, value in source.items():
        copied[key] = _deep_copy_mapping(value) if isinstance(value, Mapping) else value
    return copied


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any] | None = None) -> Policies:
    """Load policies from a mapping or YAML file with environment overrides."""

    if source is None:
        raw: MutableMapping[str, Any] = {}
    elif isinstance(source, Mapping):
        raw = _deep_copy_mapping(source)
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, MutableMapping):
            raise ValueError(f"Policy file '{path}' must contain a mapping at the top level")
        raw = _deep_copy_mapping(loaded)
    hydrated = _resolve_env_overrides(raw)
    return Policies.model_validate(hydrated)


__all__ = [
    "Policies",
    "load_policies",
    "NormalizationPolicy",
    "BlockingPolicy",
    "MatchingPolicy",
    "FieldWeights",
    "AddressWeights",
    "MergePolicy",
    "CompletenessWeights",
    "EnginePolicy",
]
