"""Pytest configuration and fixtures for data_entity tests."""
import asyncio
import pytest
from typing import Any, Generator, List, Optional, Tuple

from data_entity import (
    DataEntity,
    EntityConfig,
    KeyStrategy,
    LifecycleEvent,
    OperationConfig,
    OperationKind,
    RequestLedger,
)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SteppingClock(FakeClock):
    """Fake clock moving forward by ``step`` seconds after every read."""

    def __init__(self, start: float = 0.0) -> None:
        super().__init__(start)
        self.step = 0.0

    def __call__(self) -> float:
        now = self.now
        self.now += self.step
        return now


class ControlledExecutor:
    """Executor whose operations settle only when the test settles them."""

    def __init__(self) -> None:
        self.calls: List[Tuple[OperationKind, OperationConfig]] = []
        self.futures: List[asyncio.Future] = []

    def __call__(
        self, kind: OperationKind, config: OperationConfig, entity_config: EntityConfig
    ) -> asyncio.Future:
        self.calls.append((kind, config))
        future = asyncio.get_running_loop().create_future()
        self.futures.append(future)
        return future

    def succeed(self, index: int, value: Any = None) -> None:
        self.futures[index].set_result(value)

    def fail(self, index: int, error: BaseException) -> None:
        self.futures[index].set_exception(error)


class EventRecorder:
    """Dispatch sink collecting lifecycle events."""

    def __init__(self) -> None:
        self.events: List[LifecycleEvent] = []

    def __call__(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [event.type for event in self.events]


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def ledger(clock: FakeClock) -> RequestLedger:
    """Create a request ledger retaining 3 requests per kind."""
    return RequestLedger(cache_requests_count=3, clock=clock)


@pytest.fixture
def key_strategy() -> KeyStrategy:
    """Create a key strategy with default extraction."""
    return KeyStrategy()


@pytest.fixture
def executor() -> ControlledExecutor:
    """Create a controlled executor."""
    return ControlledExecutor()


@pytest.fixture
def recorder() -> EventRecorder:
    """Create an event recorder."""
    return EventRecorder()


def make_entity(
    executor: Any,
    clock: FakeClock,
    dispatch: Optional[EventRecorder] = None,
    name: str = "users",
    **options: Any,
) -> DataEntity:
    """Build a data entity around an executor and a fake clock."""
    return DataEntity(name, EntityConfig(process=executor, clock=clock, **options), dispatch)


@pytest.fixture
def entity(
    executor: ControlledExecutor, clock: FakeClock, recorder: EventRecorder
) -> Generator[DataEntity, None, None]:
    """Create a 'users' data entity with default settings."""
    users = make_entity(executor, clock, recorder)
    yield users
    users.clear()
