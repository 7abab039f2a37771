"""
Data entity: request lifecycle driver and public query surface of one entity collection.
"""
import asyncio
import dataclasses
import inspect
import logging
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple, Union

from .config import EntityConfig, merge_entity_config, merge_operation_config
from .errors import DataEntityConfigError
from .gate import CacheGate
from .keys import KeyStrategy
from .ledger import RequestLedger
from .structural import structural_equal
from .tags import format_tag, parse_action, parse_state, parse_tag
from .types import (
    CompletionCallback,
    LifecycleEvent,
    LifecycleEventListener,
    OperationConfig,
    OperationKind,
    Request,
    RequestState,
    coerce_operation_kind,
)
from .view import EntityCollection, MaterializedViewBuilder

logger = logging.getLogger(__name__)

OperationConfigLike = Union[None, OperationConfig, Mapping[str, Any]]


class DataEntity:
    """
    DataEntity - Deduplicated async operations over one entity collection.

    Operations go through ``perform``: equal requests that are in-flight or
    still fresh are reused instead of launched again, admitted requests are
    handed to the configured executor and their outcome is recorded in the
    request ledger. ``get_state`` folds that ledger, including pending
    optimistic edits, into an ordered ``key -> entity`` dict.

    Example:
        async def process(kind, config, entity_config):
            if kind is OperationKind.READ_MANY:
                return await api.list_users(**config.params)
            ...

        users = DataEntity("users", EntityConfig(process=process, cache_validity_seconds=30))

        request_id = users.perform(OperationKind.READ_MANY)
        await users.wait(request_id)
        users.get_state()  # {"1": {"id": 1, ...}, ...}
    """

    def __init__(
        self,
        name: str,
        config: Optional[EntityConfig] = None,
        dispatch: Optional[LifecycleEventListener] = None,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise DataEntityConfigError(
                f"Data entity name has to be a non-empty string. Instead specified {name!r}"
            )
        self._config = merge_entity_config(config)
        if not callable(self._config.process):
            raise DataEntityConfigError(
                f"Data entity '{name}' config process property has to be a callable"
            )

        self._name = name
        self._dispatch = dispatch
        self._listeners: Set[LifecycleEventListener] = set()
        self._futures: Dict[int, asyncio.Future] = {}

        self._ledger = RequestLedger(self._config.cache_requests_count, self._config.clock)
        self._gate = CacheGate(self._ledger, self._config.cache_validity_seconds, self._config.clock)
        self._keys = KeyStrategy(self._config.key_extractor, self._config.key_generator)
        self._view = MaterializedViewBuilder(
            self._keys,
            defaults=self._config.reducer_default,
            value_extractor=self._config.value_extractor,
        )
        logger.debug(
            f"DataEntity.__init__: name={name} "
            f"cache_requests_count={self._config.cache_requests_count} "
            f"cache_validity_seconds={self._config.cache_validity_seconds!r}"
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def ledger(self) -> RequestLedger:
        return self._ledger

    def get_config(self) -> EntityConfig:
        """Get a copy of the merged configuration."""
        return dataclasses.replace(self._config, extra=dict(self._config.extra))

    # === lifecycle ===

    def perform(
        self,
        kind: Union[OperationKind, str],
        config: OperationConfigLike = None,
        on_complete: Optional[CompletionCallback] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Launch an operation, or join an equal one.

        Returns the id of the new request, or of the in-flight or still
        fresh request that made launching unnecessary. ``on_complete`` is
        called as ``on_complete(error, result)`` once a launched request
        settles; it is not called when an existing request is reused.

        The executor is called with ``(kind, config, entity_config)`` and
        returns an awaitable, or None when there is nothing to do, in which
        case the request succeeds immediately with no payload. An awaitable
        is scheduled on the running event loop. Any other return value fails
        the request with a TypeError.
        """
        kind = coerce_operation_kind(kind)
        config = merge_operation_config(config, self._config.operation_defaults)

        reusable = self._gate.reusable_for(kind, config)
        if reusable is not None:
            logger.debug(f"DataEntity.perform: {self._name} {kind.value} joined id={reusable.id}")
            return reusable.id

        request = self._ledger.admit(kind, config)
        self._emit(kind, RequestState.ACTIVE, request.id, config, None, meta)

        try:
            operation = self._config.process(kind, config, self._config)
        except Exception as error:
            logger.debug(
                f"DataEntity.perform: {self._name} {kind.value} id={request.id} "
                f"executor raised {error!r}"
            )
            self._settle(request.id, kind, config, on_complete, meta, None, error)
            return request.id

        if operation is None:
            self._settle(request.id, kind, config, on_complete, meta, None, None)
            return request.id

        if not inspect.isawaitable(operation):
            error = TypeError(
                f"Executor of data entity '{self._name}' returned {type(operation).__name__}, "
                "expected an awaitable or None"
            )
            logger.error(f"DataEntity.perform: {self._name} {kind.value} id={request.id} {error}")
            self._settle(request.id, kind, config, on_complete, meta, None, error)
            return request.id

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as error:
            if inspect.iscoroutine(operation):
                operation.close()
            logger.error(
                f"DataEntity.perform: {self._name} {kind.value} id={request.id} "
                "executor returned an awaitable outside of a running event loop"
            )
            self._settle(request.id, kind, config, on_complete, meta, None, error)
            return request.id

        future = asyncio.ensure_future(operation, loop=loop)
        self._futures[request.id] = future
        future.add_done_callback(
            partial(self._on_done, request.id, kind, config, on_complete, meta)
        )
        return request.id

    async def wait(self, request_id: int) -> Optional[Request]:
        """Wait for a request to settle. Returns it, or None if it is no longer retained."""
        future = self._futures.get(request_id)
        if future is not None:
            await asyncio.wait([future])
        return self._ledger.get(request_id)

    async def perform_and_wait(
        self,
        kind: Union[OperationKind, str],
        config: OperationConfigLike = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Optional[Request]:
        """Perform an operation and wait until the resulting request settles."""
        return await self.wait(self.perform(kind, config, meta=meta))

    def _on_done(
        self,
        request_id: int,
        kind: OperationKind,
        config: OperationConfig,
        on_complete: Optional[CompletionCallback],
        meta: Optional[Dict[str, Any]],
        future: asyncio.Future,
    ) -> None:
        self._futures.pop(request_id, None)
        if future.cancelled():
            self._settle(request_id, kind, config, on_complete, meta, None, asyncio.CancelledError())
            return
        error = future.exception()
        result = None if error is not None else future.result()
        self._settle(request_id, kind, config, on_complete, meta, result, error)

    def _settle(
        self,
        request_id: int,
        kind: OperationKind,
        config: OperationConfig,
        on_complete: Optional[CompletionCallback],
        meta: Optional[Dict[str, Any]],
        result: Any,
        error: Optional[BaseException],
    ) -> None:
        request = self._ledger.resolve(request_id, result=result, error=error)
        if request is None:
            logger.debug(
                f"DataEntity._settle: {self._name} {kind.value} id={request_id} "
                "settled after leaving the ledger"
            )
        state = RequestState.FAILED if error is not None else RequestState.SUCCEEDED
        self._emit(kind, state, request_id, config, error if error is not None else result, meta)
        if on_complete is not None:
            on_complete(error, result)

    # === queries ===

    def get_state(self) -> EntityCollection:
        """Current materialized collection as a read-only mapping. Rebuilt only when the ledger changed."""
        return self._view.build(self._ledger)

    def is_optimistic(self, key: Any) -> bool:
        """Whether ``key`` is visible only because of a pending optimistic create."""
        self.get_state()
        return self._view.is_optimistic(key)

    def should_request(self, kind: Union[OperationKind, str], config: OperationConfigLike = None) -> bool:
        """Whether ``perform`` would launch a new request for ``kind`` and ``config``."""
        kind = coerce_operation_kind(kind)
        return self._gate.should_admit(
            kind, merge_operation_config(config, self._config.operation_defaults)
        )

    def is_performing(self, kind: Union[OperationKind, str], config: OperationConfigLike = None) -> bool:
        """Whether a request of ``kind`` (with an equal config, if given) is in-flight."""
        kind = coerce_operation_kind(kind)
        if config is None:
            return self._ledger.find(kind, lambda request: request.active) is not None
        wanted = merge_operation_config(config, self._config.operation_defaults)
        return (
            self._ledger.find(
                kind, lambda request: request.active and structural_equal(request.config, wanted)
            )
            is not None
        )

    def get_last_error(
        self, kind: Union[OperationKind, str], config: OperationConfigLike = None
    ) -> Optional[BaseException]:
        """
        Error of the most recently finished request of ``kind``.

        With ``config``, only requests with an equal config are considered.
        Returns None when that request succeeded or nothing has finished.
        """
        kind = coerce_operation_kind(kind)
        finished = self._ledger.finished(kind)
        if config is not None:
            wanted = merge_operation_config(config, self._config.operation_defaults)
            finished = [request for request in finished if structural_equal(request.config, wanted)]
        if not finished:
            return None
        return finished[-1].error

    def requests(self, kind: Union[OperationKind, str]) -> List[Request]:
        """Retained requests of ``kind`` in start order."""
        return self._ledger.requests(coerce_operation_kind(kind))

    def clear(self) -> None:
        """Forget every retained request and the materialized view."""
        logger.debug(f"DataEntity.clear: {self._name}")
        self._ledger.clear()
        self._view.reset()

    # === action tags ===

    def get_const(self, kind: Union[OperationKind, str], state: RequestState) -> str:
        """Action tag of a lifecycle event of this entity."""
        return format_tag(self._name, coerce_operation_kind(kind), state)

    def parse_tag(self, tag: Any) -> Optional[Tuple[OperationKind, RequestState]]:
        return parse_tag(self._name, tag)

    def parse_action(self, tag: Any) -> Optional[OperationKind]:
        return parse_action(self._name, tag)

    def parse_state(self, tag: Any) -> Optional[RequestState]:
        return parse_state(self._name, tag)

    # === events ===

    def on(self, listener: LifecycleEventListener) -> Callable[[], None]:
        """Add event listener."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: LifecycleEventListener) -> None:
        """Remove event listener."""
        self._listeners.discard(listener)

    def _emit(
        self,
        kind: OperationKind,
        state: RequestState,
        request_id: int,
        config: OperationConfig,
        payload: Any,
        meta: Optional[Dict[str, Any]],
    ) -> None:
        """Emit a lifecycle event to the dispatch sink and all listeners."""
        event = LifecycleEvent(
            entity=self._name,
            kind=kind,
            state=state,
            request_id=request_id,
            config=config,
            type=format_tag(self._name, kind, state),
            timestamp=self._ledger.now(),
            payload=payload,
            meta=meta,
        )
        sinks = [self._dispatch] if self._dispatch is not None else []
        for listener in sinks + list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"DataEntity._emit: listener failed for {event.type}")


def create_data_entity(
    name: str,
    config: Optional[EntityConfig] = None,
    dispatch: Optional[LifecycleEventListener] = None,
) -> DataEntity:
    """Create a data entity."""
    return DataEntity(name, config, dispatch)
