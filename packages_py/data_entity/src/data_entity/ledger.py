"""
Request ledger: bounded per-kind history of in-flight and finished requests.
"""
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import DataEntityConfigError
from .types import OperationConfig, OperationKind, Request, RequestState

logger = logging.getLogger(__name__)

RequestPredicate = Callable[[Request], bool]


class RequestLedger:
    """
    RequestLedger - Per-entity store of requests, grouped by operation kind.

    Each kind keeps its requests in start order and retains at most
    ``cache_requests_count`` of them; the oldest are dropped first. Request
    ids increase monotonically for the lifetime of the ledger, across
    ``clear()`` calls.

    The ledger doubles as the response cache: finished requests carry their
    result or error and finish time, which the cache gate and the view
    builder read back.

    Example:
        ledger = RequestLedger(cache_requests_count=3)

        request = ledger.admit(OperationKind.READ_MANY, OperationConfig())
        ledger.resolve(request.id, result=[{"id": 1}])

        ledger.find(OperationKind.READ_MANY, lambda r: r.succeeded)
    """

    def __init__(
        self,
        cache_requests_count: int = 3,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if (
            isinstance(cache_requests_count, bool)
            or not isinstance(cache_requests_count, int)
            or cache_requests_count < 1
        ):
            raise DataEntityConfigError(
                f"cache_requests_count has to be a positive integer, got {cache_requests_count!r}"
            )
        self._limit = cache_requests_count
        self._clock = clock or time.time
        self._last_id = 0
        self._version = 0
        self._requests: Dict[OperationKind, List[Request]] = {}
        self._by_id: Dict[int, Request] = {}
        self.clear()

    @property
    def cache_requests_count(self) -> int:
        return self._limit

    @property
    def version(self) -> int:
        """Incremented on every mutation."""
        return self._version

    def now(self) -> float:
        return self._clock()

    def admit(self, kind: OperationKind, config: OperationConfig) -> Request:
        """Record a new active request and trim the kind's history."""
        self._last_id += 1
        request = Request(
            id=self._last_id,
            kind=kind,
            config=config,
            state=RequestState.ACTIVE,
            started_at=self._clock(),
        )
        self._requests[kind].append(request)
        self._by_id[request.id] = request
        logger.debug(f"RequestLedger.admit: kind={kind.value} id={request.id}")
        self._trim(kind)
        self._version += 1
        return request

    def resolve(
        self,
        request_id: int,
        *,
        result: Any = None,
        error: Optional[BaseException] = None,
    ) -> Optional[Request]:
        """
        Finish a request with a result, or with an error when ``error`` is set.

        Returns None without touching the ledger when the request is no
        longer retained or has already finished.
        """
        request = self._by_id.get(request_id)
        if request is None:
            logger.debug(f"RequestLedger.resolve: id={request_id} is not retained, ignoring")
            return None
        if request.finished:
            logger.debug(f"RequestLedger.resolve: id={request_id} already finished, ignoring")
            return None

        request.finished_at = self._clock()
        if error is not None:
            request.state = RequestState.FAILED
            request.error = error
            request.result = None
        else:
            request.state = RequestState.SUCCEEDED
            request.result = result
        logger.debug(
            f"RequestLedger.resolve: kind={request.kind.value} id={request_id} "
            f"state={request.state.name}"
        )
        self._trim(request.kind)
        self._version += 1
        return request

    def get(self, request_id: int) -> Optional[Request]:
        """Get a retained request by id."""
        return self._by_id.get(request_id)

    def find(self, kind: OperationKind, predicate: RequestPredicate) -> Optional[Request]:
        """Return the most recently started request of ``kind`` matching ``predicate``."""
        for request in reversed(self._requests[kind]):
            if predicate(request):
                return request
        return None

    def requests(self, kind: OperationKind) -> List[Request]:
        """Requests of a kind in start order."""
        return list(self._requests[kind])

    def all_requests(self) -> Iterator[Request]:
        """All requests, in canonical kind order then start order."""
        for kind in OperationKind:
            yield from self._requests[kind]

    def finished(self, kind: Optional[OperationKind] = None) -> List[Request]:
        """Finished requests sorted by finish time, ties broken by id."""
        source = self._requests[kind] if kind is not None else self.all_requests()
        done = [request for request in source if request.finished]
        done.sort(key=lambda request: (request.finished_at, request.id))
        return done

    def size(self) -> int:
        return len(self._by_id)

    def clear(self) -> None:
        """Drop every stored request. Ids keep increasing."""
        self._requests = {kind: [] for kind in OperationKind}
        self._by_id = {}
        self._version += 1

    def _trim(self, kind: OperationKind) -> None:
        requests = self._requests[kind]
        overflow = len(requests) - self._limit
        if overflow <= 0:
            return
        for evicted in requests[:overflow]:
            del self._by_id[evicted.id]
            logger.debug(
                f"RequestLedger._trim: evicted kind={kind.value} id={evicted.id} "
                f"state={evicted.state.name}"
            )
        del requests[:overflow]
