"""Declarative data entity settings.

Provides Pydantic models for validating entity settings and a loader reading
them from YAML files, e.g.::

    defaults:
      cache_requests_count: 5
      cache_validity_seconds: 30
    entities:
      users: {}
      posts:
        cache_validity_seconds:
          READ_MANY: 60
          READ_ONE: 10

Executors are code, not settings; they are supplied when the settings are
turned into entities.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, NonNegativeFloat, PositiveInt, ValidationError

from .config import EntityConfig, Executor, entity_config_from_mapping, merge_operation_config
from .entity import DataEntity
from .errors import DataEntityConfigError
from .factory import configure_data_entities
from .types import LifecycleEventListener, OperationConfig, OperationKind

logger = logging.getLogger(__name__)


class OperationSettings(BaseModel):
    """Default operation config of an entity."""
    optimistic: bool = False
    force: bool = False
    params: Dict[str, Any] = Field(default_factory=dict)

    def to_operation_config(self) -> OperationConfig:
        return merge_operation_config(self.model_dump(exclude_unset=True))


class EntitySettings(BaseModel):
    """Validated settings of a single data entity."""
    cache_requests_count: PositiveInt = 3
    cache_validity_seconds: Optional[
        Union[NonNegativeFloat, Dict[OperationKind, NonNegativeFloat]]
    ] = None
    reducer_default: Optional[Union[List[Any], Dict[str, Any]]] = None
    operation_defaults: Optional[OperationSettings] = None

    def to_entity_config(self, **overrides: Any) -> EntityConfig:
        """Build an EntityConfig from the explicitly set fields, plus overrides."""
        values = self.model_dump(exclude_unset=True, exclude={"operation_defaults"})
        if self.operation_defaults is not None:
            values["operation_defaults"] = self.operation_defaults.to_operation_config()
        values.update(overrides)
        return entity_config_from_mapping(values)


class DataEntitySettings(BaseModel):
    """Root settings model: shared defaults plus per-entity settings."""
    defaults: EntitySettings = Field(default_factory=EntitySettings)
    entities: Dict[str, EntitySettings] = Field(default_factory=dict)


def parse_entity_settings(data: Optional[Dict[str, Any]]) -> DataEntitySettings:
    """Validate raw settings data."""
    try:
        return DataEntitySettings.model_validate(data or {})
    except ValidationError as e:
        raise DataEntityConfigError(f"Invalid data entity settings: {e}") from e


def load_entity_settings(path: Union[str, Path]) -> DataEntitySettings:
    """
    Load data entity settings from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated DataEntitySettings

    Raises:
        FileNotFoundError: The file does not exist
        DataEntityConfigError: The file is not valid YAML or fails validation
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"No data entity settings file found at {file_path}")

    logger.debug(f"Parsing YAML file: {file_path}")
    try:
        raw_data = yaml.safe_load(file_path.read_text())
    except yaml.YAMLError as e:
        raise DataEntityConfigError(f"YAML parsing error in {file_path}: {e}") from e

    if raw_data is not None and not isinstance(raw_data, dict):
        raise DataEntityConfigError(
            f"Data entity settings in {file_path} must be a mapping, got {type(raw_data).__name__}"
        )

    settings = parse_entity_settings(raw_data)
    logger.info(f"Loaded {len(settings.entities)} data entity settings from: {file_path}")
    return settings


def build_data_entities(
    settings: DataEntitySettings,
    process: Executor,
    dispatch: Optional[LifecycleEventListener] = None,
) -> Dict[str, DataEntity]:
    """Create the entities described by ``settings``, all sharing ``process``."""
    create = configure_data_entities(
        settings.defaults.to_entity_config(process=process),
        dispatch=dispatch,
    )
    return create({name: entity.to_entity_config() for name, entity in settings.entities.items()})
