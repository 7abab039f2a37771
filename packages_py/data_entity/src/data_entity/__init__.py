"""
Entity collection cache with request deduplication, time-based caching and optimistic edits.
"""
from .types import (
    OperationKind,
    RequestState,
    OperationConfig,
    Request,
    LifecycleEvent,
    LifecycleEventListener,
    CompletionCallback,
    coerce_operation_kind,
)
from .errors import (
    DataEntityError,
    DataEntityConfigError,
    UnknownOperationKindError,
)
from .config import (
    EntityConfig,
    Executor,
    DEFAULT_ENTITY_CONFIG,
    DEFAULT_OPERATION_CONFIG,
    merge_entity_config,
    merge_operation_config,
)
from .structural import structural_equal, deep_merge
from .keys import KeyStrategy, default_key_extractor, default_key_generator
from .ledger import RequestLedger
from .gate import CacheGate
from .view import MaterializedViewBuilder, EntityCollection
from .tags import PREFIX, format_tag, parse_tag, parse_action, parse_state
from .entity import DataEntity, create_data_entity
from .factory import CombinedEntities, configure_data_entities, combine_data_entities
from .settings import (
    OperationSettings,
    EntitySettings,
    DataEntitySettings,
    parse_entity_settings,
    load_entity_settings,
    build_data_entities,
)


__all__ = [
    # Types
    "OperationKind",
    "RequestState",
    "OperationConfig",
    "Request",
    "LifecycleEvent",
    "LifecycleEventListener",
    "CompletionCallback",
    "coerce_operation_kind",
    # Errors
    "DataEntityError",
    "DataEntityConfigError",
    "UnknownOperationKindError",
    # Config
    "EntityConfig",
    "Executor",
    "DEFAULT_ENTITY_CONFIG",
    "DEFAULT_OPERATION_CONFIG",
    "merge_entity_config",
    "merge_operation_config",
    # Core
    "structural_equal",
    "deep_merge",
    "KeyStrategy",
    "default_key_extractor",
    "default_key_generator",
    "RequestLedger",
    "CacheGate",
    "MaterializedViewBuilder",
    "EntityCollection",
    # Tags
    "PREFIX",
    "format_tag",
    "parse_tag",
    "parse_action",
    "parse_state",
    # Entities
    "DataEntity",
    "create_data_entity",
    "CombinedEntities",
    "configure_data_entities",
    "combine_data_entities",
    # Settings
    "OperationSettings",
    "EntitySettings",
    "DataEntitySettings",
    "parse_entity_settings",
    "load_entity_settings",
    "build_data_entities",
]

__version__ = "1.0.0"
