"""
Action tags for routing lifecycle events through string-keyed event buses.

A tag has the form ``RDE/<entity>/<KIND>_<STATE>``, for example
``RDE/users/READ_MANY_START``.
"""
from typing import Any, Optional, Tuple

from .types import OperationKind, RequestState

PREFIX = "RDE"


def format_tag(entity_name: str, kind: OperationKind, state: RequestState) -> str:
    """Build the action tag of a lifecycle event."""
    return f"{PREFIX}/{entity_name}/{OperationKind(kind).value}_{RequestState(state).value}"


def parse_action(entity_name: str, tag: Any) -> Optional[OperationKind]:
    """Operation kind named by ``tag``, or None when the tag does not belong to the entity."""
    parsed = parse_tag(entity_name, tag)
    return parsed[0] if parsed is not None else None


def parse_state(entity_name: str, tag: Any) -> Optional[RequestState]:
    """Request state named by ``tag``, or None when the tag does not belong to the entity."""
    parsed = parse_tag(entity_name, tag)
    return parsed[1] if parsed is not None else None


def parse_tag(entity_name: str, tag: Any) -> Optional[Tuple[OperationKind, RequestState]]:
    """Recover ``(kind, state)`` from a tag, or None for any non-matching string."""
    if not isinstance(tag, str):
        return None
    head = f"{PREFIX}/{entity_name}/"
    if not tag.startswith(head):
        return None
    rest = tag[len(head):]
    for state in RequestState:
        suffix = f"_{state.value}"
        if rest.endswith(suffix):
            try:
                return OperationKind(rest[: -len(suffix)]), state
            except ValueError:
                return None
    return None
