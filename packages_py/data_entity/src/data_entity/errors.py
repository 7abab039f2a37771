"""
Errors raised by data_entity.

Operation failures reported by an executor are never raised; they are kept on
the failed request and surfaced through ``DataEntity.get_last_error`` or the
completion callback.
"""
from typing import Any, Iterable


class DataEntityError(Exception):
    """Base error for data_entity."""

    code = "DATA_ENTITY_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.name = type(self).__name__


class DataEntityConfigError(DataEntityError):
    """Error thrown when a data entity is constructed with invalid configuration."""

    code = "DATA_ENTITY_CONFIG"


class UnknownOperationKindError(DataEntityError, ValueError):
    """Error thrown when an operation kind outside the fixed set is requested."""

    code = "UNKNOWN_OPERATION_KIND"

    def __init__(self, kind: Any, known: Iterable[str]) -> None:
        super().__init__(
            f"Unknown operation kind {kind!r}. Please use one of {', '.join(known)}"
        )
        self.kind = kind
