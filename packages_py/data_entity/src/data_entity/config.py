"""
Configuration utilities for data_entity.
"""
import dataclasses
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .errors import DataEntityConfigError
from .keys import KeyExtractor, KeyGenerator, default_key_extractor, default_key_generator
from .types import OperationConfig, OperationKind

ValidityTime = Union[None, float, Mapping[Union[OperationKind, str], float]]

Executor = Callable[[OperationKind, OperationConfig, "EntityConfig"], Optional[Awaitable[Any]]]
"""Executor type. Returns an awaitable, or None when there is nothing to do."""


@dataclass
class EntityConfig:
    """Configuration of a single data entity."""

    process: Optional[Executor] = None
    """Executor performing the actual operation."""

    key_extractor: Optional[KeyExtractor] = None
    """Extracts the key of an entity. Defaults to its ``id``."""

    key_generator: Optional[KeyGenerator] = None
    """Generates a key for entities without one (optimistic creates)."""

    value_extractor: Optional[Callable[[Any], Any]] = None
    """Maps confirmed payload items to stored values. Defaults to identity."""

    cache_requests_count: Optional[int] = None
    """Number of requests retained per operation kind."""

    cache_validity_seconds: ValidityTime = None
    """How long a success suppresses equal requests. None means never."""

    reducer_default: Optional[Union[List[Any], Mapping[str, Any]]] = None
    """Seed entities, as a list or a pre-built key -> entity mapping."""

    operation_defaults: Optional[OperationConfig] = None
    """Defaults every per-call OperationConfig is merged over."""

    clock: Optional[Callable[[], float]] = None
    """Time source in seconds."""

    extra: Dict[str, Any] = field(default_factory=dict)
    """Opaque values passed through to the executor."""


def _identity(value: Any) -> Any:
    return value


DEFAULT_OPERATION_CONFIG = OperationConfig(
    optimistic=False,
    force=False,
    data=None,
    params={},
    keys=(),
)


DEFAULT_ENTITY_CONFIG = EntityConfig(
    process=None,
    key_extractor=default_key_extractor,
    key_generator=default_key_generator,
    value_extractor=_identity,
    cache_requests_count=3,
    cache_validity_seconds=None,
    reducer_default=None,
    operation_defaults=DEFAULT_OPERATION_CONFIG,
    clock=time.time,
)


def merge_entity_config(
    config: Optional[EntityConfig] = None,
    defaults: EntityConfig = DEFAULT_ENTITY_CONFIG,
) -> EntityConfig:
    """Merge user config with defaults. Fields left as None take the default."""
    if config is None:
        return dataclasses.replace(defaults, extra=dict(defaults.extra))

    return EntityConfig(
        process=config.process or defaults.process,
        key_extractor=config.key_extractor or defaults.key_extractor,
        key_generator=config.key_generator or defaults.key_generator,
        value_extractor=config.value_extractor or defaults.value_extractor,
        cache_requests_count=config.cache_requests_count
        if config.cache_requests_count is not None
        else defaults.cache_requests_count,
        cache_validity_seconds=config.cache_validity_seconds
        if config.cache_validity_seconds is not None
        else defaults.cache_validity_seconds,
        reducer_default=config.reducer_default
        if config.reducer_default is not None
        else defaults.reducer_default,
        operation_defaults=config.operation_defaults or defaults.operation_defaults,
        clock=config.clock or defaults.clock,
        extra={**defaults.extra, **config.extra},
    )


def entity_config_from_mapping(values: Mapping[str, Any]) -> EntityConfig:
    """Build an EntityConfig from a mapping of field names."""
    known = {f.name for f in dataclasses.fields(EntityConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise DataEntityConfigError(f"Unknown entity config options: {', '.join(unknown)}")
    return EntityConfig(**values)


def merge_operation_config(
    config: Union[None, OperationConfig, Mapping[str, Any]] = None,
    defaults: OperationConfig = DEFAULT_OPERATION_CONFIG,
) -> OperationConfig:
    """
    Merge a per-call operation config over defaults.

    Accepts None, an OperationConfig (returned with normalized keys), or a
    mapping of field overrides.
    """
    if config is None:
        overrides: Dict[str, Any] = {}
    elif isinstance(config, OperationConfig):
        overrides = {f.name: getattr(config, f.name) for f in dataclasses.fields(config)}
    elif isinstance(config, Mapping):
        overrides = dict(config)
        unknown = sorted(set(overrides) - {f.name for f in dataclasses.fields(OperationConfig)})
        if unknown:
            raise DataEntityConfigError(f"Unknown operation config options: {', '.join(unknown)}")
    else:
        raise DataEntityConfigError(
            f"Operation config has to be a mapping or OperationConfig, got {type(config).__name__}"
        )

    merged = dataclasses.replace(defaults, **overrides)
    keys = merged.keys
    if keys is None:
        keys = ()
    elif isinstance(keys, (str, bytes, Mapping)) or not isinstance(keys, Iterable):
        keys = (keys,)
    params = merged.params
    if isinstance(params, dict):
        params = dict(params)
    return dataclasses.replace(merged, keys=tuple(keys), params=params)
