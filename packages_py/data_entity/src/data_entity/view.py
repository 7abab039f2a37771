"""
Materialized view: folds the request ledger into an ordered key -> entity mapping.
"""
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple, Union

from .keys import KeyStrategy
from .ledger import RequestLedger
from .structural import deep_merge
from .types import Request

logger = logging.getLogger(__name__)

EntityCollection = Mapping[str, Any]
"""Read-only ordered key -> entity view."""


def _as_items(payload: Any, single: bool) -> List[Any]:
    """Normalize an operation payload to a list of items."""
    if payload is None:
        return []
    if single:
        return [payload]
    if isinstance(payload, (list, tuple)):
        return list(payload)
    logger.warning(
        f"_as_items: expected a list payload, got {type(payload).__name__}; ignoring it"
    )
    return []


def _target_key(keys: Tuple[Any, ...], index: int, item: Any, strategy: KeyStrategy) -> Optional[str]:
    if index < len(keys) and keys[index] is not None:
        return str(keys[index])
    return strategy.extract(item)


class MaterializedViewBuilder:
    """
    MaterializedViewBuilder - Derives the entity collection from a ledger.

    The collection is built in two passes:

    1. Confirmed history. Every finished, non-failed request is folded in
       finish-time order (ties broken by request id). Creates and reads
       upsert their items, updates merge into the targeted entities and
       deletes remove the keys listed in their config.
    2. Optimistic overlay. Every still-active request whose config is
       optimistic is applied on top, in kind order then start order.
       Creates insert their data under an extracted or generated key,
       updates merge into existing entities only, deletes remove keys.

    Once an optimistic request leaves the active state its overlay is no
    longer applied and only the confirmed history governs its keys.

    The result is memoized against the ledger version: building again from
    an unchanged ledger returns the same read-only mapping object.
    """

    def __init__(
        self,
        key_strategy: KeyStrategy,
        defaults: Optional[Union[List[Any], Mapping[str, Any]]] = None,
        value_extractor: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        self._keys = key_strategy
        self._defaults = defaults
        self._value = value_extractor or (lambda item: item)
        self._confirmed = {
            "create": self._fold_upsert,
            "read": self._fold_upsert,
            "update": self._fold_update,
            "delete": self._fold_delete,
        }
        self._overlay = {
            "create": self._overlay_create,
            "read": None,
            "update": self._overlay_update,
            "delete": self._fold_delete,
        }
        self.reset()

    def reset(self) -> None:
        """Forget the memoized view and generated optimistic keys."""
        self._memo_key: Optional[Tuple[int, int]] = None
        self._memo: Optional[EntityCollection] = None
        self._generated: Dict[Tuple[int, int], str] = {}
        self._optimistic_keys: Set[str] = set()

    def is_optimistic(self, key: Any) -> bool:
        """Whether ``key`` was introduced by an optimistic create in the last build."""
        return str(key) in self._optimistic_keys

    def build(self, ledger: RequestLedger) -> EntityCollection:
        memo_key = (id(ledger), ledger.version)
        if self._memo is not None and self._memo_key == memo_key:
            return self._memo

        logger.debug(f"MaterializedViewBuilder.build: rebuilding for ledger version={ledger.version}")
        items = self._seed()

        for request in ledger.finished():
            if request.failed:
                continue
            self._confirmed[request.kind.verb](items, request, request.result)

        active_ids = set()
        self._optimistic_keys = set()
        for request in ledger.all_requests():
            if not (request.active and request.config.optimistic):
                continue
            active_ids.add(request.id)
            apply = self._overlay[request.kind.verb]
            if apply is not None:
                apply(items, request, request.config.data)

        self._generated = {
            slot: key for slot, key in self._generated.items() if slot[0] in active_ids
        }
        self._memo_key = memo_key
        self._memo = MappingProxyType(items)
        return self._memo

    def _seed(self) -> Dict[str, Any]:
        items: Dict[str, Any] = {}
        if self._defaults is None:
            return items
        if isinstance(self._defaults, Mapping):
            for key, entity in self._defaults.items():
                items[str(key)] = entity
            return items
        for entity in self._defaults:
            items[self._keys.key_for(entity)] = entity
        return items

    # === confirmed history ===

    def _fold_upsert(self, items: Dict[str, Any], request: Request, payload: Any) -> None:
        for item in _as_items(payload, request.kind.is_single):
            key = self._keys.extract(item)
            if key is None:
                logger.warning(
                    f"MaterializedViewBuilder._fold_upsert: item without key in "
                    f"kind={request.kind.value} id={request.id}, skipping"
                )
                continue
            items[key] = self._value(item)

    def _fold_update(self, items: Dict[str, Any], request: Request, payload: Any) -> None:
        keys = request.config.keys
        for index, item in enumerate(_as_items(payload, request.kind.is_single)):
            key = _target_key(keys, index, item, self._keys)
            if key is None:
                logger.warning(
                    f"MaterializedViewBuilder._fold_update: item without key in "
                    f"kind={request.kind.value} id={request.id}, skipping"
                )
                continue
            value = self._value(item)
            items[key] = deep_merge(items[key], value) if key in items else value

    def _fold_delete(self, items: Dict[str, Any], request: Request, payload: Any = None) -> None:
        for key in request.config.keys:
            items.pop(str(key), None)

    # === optimistic overlay ===

    def _overlay_create(self, items: Dict[str, Any], request: Request, data: Any) -> None:
        for index, item in enumerate(_as_items(data, request.kind.is_single)):
            key = self._keys.extract(item)
            if key is None:
                slot = (request.id, index)
                key = self._generated.get(slot)
                if key is None:
                    key = self._generated[slot] = self._keys.generate(item)
            items[key] = item
            self._optimistic_keys.add(key)

    def _overlay_update(self, items: Dict[str, Any], request: Request, data: Any) -> None:
        keys = request.config.keys
        for index, item in enumerate(_as_items(data, request.kind.is_single)):
            key = _target_key(keys, index, item, self._keys)
            if key is None or key not in items:
                continue
            items[key] = deep_merge(items[key], item)
