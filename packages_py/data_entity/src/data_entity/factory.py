"""
Building and combining sets of data entities.
"""
import collections.abc
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Union

from .config import (
    DEFAULT_OPERATION_CONFIG,
    EntityConfig,
    entity_config_from_mapping,
    merge_entity_config,
    merge_operation_config,
)
from .entity import DataEntity
from .errors import DataEntityConfigError
from .types import LifecycleEventListener, OperationConfig
from .view import EntityCollection

logger = logging.getLogger(__name__)

EntityConfigLike = Union[None, EntityConfig, Mapping[str, Any]]


def _as_entity_config(config: EntityConfigLike) -> Optional[EntityConfig]:
    if config is None or isinstance(config, EntityConfig):
        return config
    if isinstance(config, Mapping):
        return entity_config_from_mapping(config)
    raise DataEntityConfigError(
        f"Entity config has to be a mapping or EntityConfig, got {type(config).__name__}"
    )


def configure_data_entities(
    global_entity_config: EntityConfigLike = None,
    global_operation_config: Union[None, OperationConfig, Mapping[str, Any]] = None,
    dispatch: Optional[LifecycleEventListener] = None,
) -> Callable[[Union[Iterable[str], Mapping[str, EntityConfigLike]]], Dict[str, DataEntity]]:
    """
    Create a factory building data entities that share global defaults.

    The returned function takes either an iterable of entity names or a
    mapping of entity name to per-entity config, and returns the entities
    keyed by name. Per-entity config overrides the global entity config,
    which overrides the package defaults.

    Example:
        create = configure_data_entities({"process": process, "cache_validity_seconds": 60})
        entities = create({"users": {}, "posts": {"cache_requests_count": 10}})
    """
    entity_defaults = merge_entity_config(_as_entity_config(global_entity_config))
    operation_defaults = merge_operation_config(
        global_operation_config,
        entity_defaults.operation_defaults or DEFAULT_OPERATION_CONFIG,
    )
    entity_defaults.operation_defaults = operation_defaults

    def create(
        entities: Union[Iterable[str], Mapping[str, EntityConfigLike]],
    ) -> Dict[str, DataEntity]:
        if isinstance(entities, Mapping):
            configs = {name: _as_entity_config(config) for name, config in entities.items()}
        elif isinstance(entities, str):
            configs = {entities: None}
        else:
            configs = {name: None for name in entities}

        created: Dict[str, DataEntity] = {}
        for name, config in configs.items():
            created[name] = DataEntity(
                name,
                merge_entity_config(config, defaults=entity_defaults),
                dispatch,
            )
        logger.debug(f"configure_data_entities: created {', '.join(created) or 'no entities'}")
        return created

    return create


class CombinedEntities(collections.abc.Mapping):
    """Read-only union of data entities keyed by entity name."""

    def __init__(self, entities: Dict[str, DataEntity]) -> None:
        self._entities = entities

    def __getitem__(self, name: str) -> DataEntity:
        return self._entities[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def get_state(self) -> Dict[str, EntityCollection]:
        """Materialized collection of every entity, keyed by entity name."""
        return {name: entity.get_state() for name, entity in self._entities.items()}

    def clear(self) -> None:
        for entity in self._entities.values():
            entity.clear()


def combine_data_entities(
    entities: Union[Mapping[Any, DataEntity], Iterable[DataEntity]],
) -> CombinedEntities:
    """
    Union many data entities, keyed by each entity's own name.

    Raises DataEntityConfigError when two entities share a name.
    """
    members = entities.values() if isinstance(entities, Mapping) else entities
    combined: Dict[str, DataEntity] = {}
    for entity in members:
        if entity.name in combined:
            raise DataEntityConfigError(f"Duplicate data entity name '{entity.name}'")
        combined[entity.name] = entity
    return CombinedEntities(combined)

