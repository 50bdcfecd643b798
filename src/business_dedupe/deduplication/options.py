"""Call options for the deduplication engine and their validation."""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from business_dedupe.config.policies import Policies
from business_dedupe.entities.core import MATCH_FIELDS, Algorithm, MergeStrategy

_CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")

FieldComparator = Callable[[Any, Any], float]
_OptionsT = TypeVar("_OptionsT", bound=BaseModel)


class OptionsValidationError(ValueError):
    """Raised when caller supplied options are malformed."""


def _to_snake(name: str) -> str:
    name = name.strip()
    if not name.isupper():
        name = _CAMEL_BOUNDARY_RE.sub("_", name)
    return name.lower().replace("-", "_")


def _coerce_field_name(name: Any) -> str:
    if not isinstance(name, str):
        raise ValueError(f"field names must be strings, got {type(name).__name__}")
    field = _to_snake(name)
    if field not in MATCH_FIELDS:
        raise ValueError(f"unknown field '{name}'; expected one of {', '.join(MATCH_FIELDS)}")
    return field


def _coerce_algorithm(value: Any) -> Algorithm:
    if isinstance(value, Algorithm):
        return value
    if not isinstance(value, str):
        raise ValueError(f"algorithm names must be strings, got {type(value).__name__}")
    candidate = _to_snake(value).replace("_", "-")
    try:
        return Algorithm(candidate)
    except ValueError:
        allowed = ", ".join(item.value for item in Algorithm)
        raise ValueError(f"unknown algorithm '{value}'; expected one of {allowed}") from None


def _coerce_strategy(value: Any) -> Any:
    if value is None or isinstance(value, MergeStrategy):
        return value
    if isinstance(value, str):
        candidate = _to_snake(value)
        try:
            return MergeStrategy(candidate)
        except ValueError:
            allowed = ", ".join(item.value for item in MergeStrategy)
            raise ValueError(f"unknown merge strategy '{value}'; expected one of {allowed}") from None
    return value


class DedupOptions(BaseModel):
    """Options accepted by ``find_duplicates`` and ``deduplicate_batch``.

    Unknown keys are rejected. Both snake_case and camelCase spellings are
    accepted. Unset values resolve to policy defaults via :meth:`resolve`.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    algorithms: Optional[Tuple[Algorithm, ...]] = None
    check_fields: Optional[Tuple[str, ...]] = None
    field_thresholds: Dict[str, float] = Field(default_factory=dict)
    custom_comparators: Dict[str, FieldComparator] = Field(default_factory=dict)
    deep_check: bool = False
    auto_merge: bool = False
    merge_strategy: Optional[MergeStrategy] = None
    batch_size: Optional[int] = Field(default=None, ge=1)
    max_workers: Optional[int] = Field(default=None, ge=1)
    scorer_timeout_seconds: Optional[float] = Field(default=None, gt=0.0)

    @field_validator("algorithms", mode="before")
    @classmethod
    def _validate_algorithms(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (str, Algorithm)):
            value = [value]
        coerced = []
        for item in value:
            algorithm = _coerce_algorithm(item)
            if algorithm not in coerced:
                coerced.append(algorithm)
        if not coerced:
            raise ValueError("algorithms must name at least one algorithm")
        return tuple(coerced)

    @field_validator("check_fields", mode="before")
    @classmethod
    def _validate_check_fields(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        coerced = []
        for item in value:
            field = _coerce_field_name(item)
            if field not in coerced:
                coerced.append(field)
        if not coerced:
            raise ValueError("check_fields must name at least one field")
        return tuple(coerced)

    @field_validator("field_thresholds", mode="before")
    @classmethod
    def _validate_field_thresholds(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("field_thresholds must be a mapping of field to number")
        coerced: Dict[str, float] = {}
        for key, threshold in value.items():
            if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
                raise ValueError(f"threshold for '{key}' must be a number")
            if not 0.0 <= float(threshold) <= 1.0:
                raise ValueError(f"threshold for '{key}' must be within [0, 1]")
            coerced[_coerce_field_name(key)] = float(threshold)
        return coerced

    @field_validator("custom_comparators", mode="before")
    @classmethod
    def _validate_custom_comparators(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("custom_comparators must be a mapping of field to callable")
        coerced: Dict[str, FieldComparator] = {}
        for key, comparator in value.items():
            if not callable(comparator):
                raise ValueError(f"comparator for '{key}' must be callable")
            coerced[_coerce_field_name(key)] = comparator
        return coerced

    @field_validator("merge_strategy", mode="before")
    @classmethod
    def _validate_strategy(cls, value: Any) -> Any:
        return _coerce_strategy(value)

    def allows(self, algorithm: Algorithm) -> bool:
        return self.algorithms is None or algorithm in self.algorithms

    def checks(self, field: str) -> bool:
        return self.check_fields is None or field in self.check_fields

    @property
    def ml_only(self) -> bool:
        return self.algorithms == (Algorithm.ML,)

    def resolve(self, policies: Policies) -> "DedupOptions":
        """Return a copy with unset values filled from *policies*."""

        defaults: Dict[str, Any] = {
            "threshold": policies.matching.default_threshold,
            "merge_strategy": MergeStrategy(policies.merge.default_strategy),
            "batch_size": policies.engine.batch_size,
            "max_workers": policies.engine.max_workers,
            "scorer_timeout_seconds": policies.engine.scorer_timeout_seconds,
        }
        update = {key: value for key, value in defaults.items() if getattr(self, key) is None}
        return self.model_copy(update=update) if update else self


class MergeOptions(BaseModel):
    """Options accepted by ``merge_businesses``."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    strategy: Optional[MergeStrategy] = Field(
        default=None,
        validation_alias=AliasChoices("strategy", "merge_strategy", "mergeStrategy"),
    )
    preserve_primary: bool = False

    @field_validator("strategy", mode="before")
    @classmethod
    def _validate_strategy(cls, value: Any) -> Any:
        return _coerce_strategy(value)

    @model_validator(mode="after")
    def _check_conflict(self) -> "MergeOptions":
        if (
            self.preserve_primary
            and self.strategy is not None
            and self.strategy is not MergeStrategy.PRESERVE_PRIMARY
        ):
            raise ValueError("preserve_primary conflicts with the requested strategy")
        return self

    def resolve_strategy(self, policies: Policies) -> MergeStrategy:
        if self.strategy is not None:
            return self.strategy
        if self.preserve_primary:
            return MergeStrategy.PRESERVE_PRIMARY
        return MergeStrategy(policies.merge.default_strategy)


def coerce_options(options: Any, model: Type[_OptionsT]) -> _OptionsT:
    """Validate *options* into *model*, raising :class:`OptionsValidationError`."""

    if options is None:
        return model()
    if isinstance(options, model):
        return options
    if isinstance(options, BaseModel):
        options = options.model_dump(exclude_unset=True)
    if not isinstance(options, Mapping):
        raise OptionsValidationError(
            f"options must be a mapping or {model.__name__}, got {type(options).__name__}"
        )
    try:
        return model.model_validate(dict(options))
    except ValidationError as exc:
        raise OptionsValidationError(f"Invalid {model.__name__}: {exc}") from exc


__all__ = [
    "DedupOptions",
    "FieldComparator",
    "MergeOptions",
    "OptionsValidationError",
    "coerce_options",
]
