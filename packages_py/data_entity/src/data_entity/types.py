"""
Types for data_entity package.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import UnknownOperationKindError


class OperationKind(str, Enum):
    """Operation kinds a data entity can perform.

    Declaration order is the canonical kind order used when overlaying
    optimistic edits.
    """

    CREATE_ONE = "CREATE_ONE"
    READ_ONE = "READ_ONE"
    UPDATE_ONE = "UPDATE_ONE"
    DELETE_ONE = "DELETE_ONE"
    CREATE_MANY = "CREATE_MANY"
    READ_MANY = "READ_MANY"
    UPDATE_MANY = "UPDATE_MANY"
    DELETE_MANY = "DELETE_MANY"

    @property
    def verb(self) -> str:
        """Operation verb shared by the -one and -many forms: create, read, update or delete."""
        return self.value.split("_", 1)[0].lower()

    @property
    def is_single(self) -> bool:
        """Whether the payload of this kind is a single entity."""
        return self.value.endswith("_ONE")


class RequestState(str, Enum):
    """Lifecycle state of a request. The value is the action tag suffix."""

    ACTIVE = "START"
    SUCCEEDED = "SUCCESS"
    FAILED = "FAIL"


def coerce_operation_kind(kind: Any) -> OperationKind:
    """Validate ``kind`` and return it as an OperationKind."""
    if isinstance(kind, OperationKind):
        return kind
    try:
        return OperationKind(kind)
    except ValueError:
        raise UnknownOperationKindError(kind, [k.value for k in OperationKind]) from None


@dataclass(frozen=True)
class OperationConfig:
    """Per-call operation configuration. Compared structurally, never by identity."""

    optimistic: bool = False
    """Apply the operation to the materialized view before it is confirmed."""

    force: bool = False
    """Launch even when an equal request is in-flight or cached."""

    data: Any = None
    """Payload sent with create/update operations."""

    params: Any = field(default_factory=dict)
    """Opaque parameters passed through to the executor."""

    keys: Tuple[Any, ...] = ()
    """Ordered entity keys targeted by update/delete operations."""


@dataclass
class Request:
    """A single operation tracked by the request ledger."""

    id: int
    kind: OperationKind
    config: OperationConfig
    state: RequestState = RequestState.ACTIVE
    started_at: float = 0
    finished_at: Optional[float] = None
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def active(self) -> bool:
        return self.state is RequestState.ACTIVE

    @property
    def finished(self) -> bool:
        return self.state is not RequestState.ACTIVE

    @property
    def succeeded(self) -> bool:
        return self.state is RequestState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.state is RequestState.FAILED


@dataclass
class LifecycleEvent:
    """Lifecycle event emitted on request start, success and failure."""

    entity: str
    kind: OperationKind
    state: RequestState
    request_id: int
    config: OperationConfig
    type: str
    """Action tag, e.g. ``RDE/users/READ_MANY_START``."""

    timestamp: float
    payload: Any = None
    """Result on success, error on failure, None on start."""

    meta: Optional[Dict[str, Any]] = None


LifecycleEventListener = Callable[[LifecycleEvent], None]
"""Event listener / dispatch sink type."""

CompletionCallback = Callable[[Optional[BaseException], Any], None]
"""Completion callback type, called as ``callback(error, result)``."""
