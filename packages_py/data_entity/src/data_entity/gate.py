"""
Admission decisions: coalescing with in-flight requests and time-based caching.
"""
import logging
import numbers
import time
from typing import Callable, Dict, Mapping, Optional, Union

from .config import ValidityTime
from .ledger import RequestLedger
from .structural import structural_equal
from .types import OperationConfig, OperationKind, Request

logger = logging.getLogger(__name__)


def _checked_duration(duration: object, label: str) -> Optional[float]:
    """Duration in seconds, or None when caching is disabled or the value is unusable."""
    if duration is None:
        return None
    if (
        isinstance(duration, bool)
        or not isinstance(duration, numbers.Real)
        or duration != duration
        or duration < 0
    ):
        logger.warning(
            f"CacheGate: unusable validity {duration!r} for {label}, treating cache as invalid"
        )
        return None
    return float(duration)


class CacheGate:
    """
    CacheGate - Decides whether an operation should be launched.

    An operation is not launched when a request of the same kind with a
    structurally equal config is still in-flight, or succeeded recently
    enough to be within the validity window. ``force`` bypasses both checks.

    The validity window is either None (successes are never reused), a
    number of seconds, or a mapping of operation kind to seconds. It is
    checked once, when the gate is created.
    """

    def __init__(
        self,
        ledger: RequestLedger,
        cache_validity_seconds: ValidityTime = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._ledger = ledger
        self._clock = clock or time.time
        self._validity: Union[None, float, Dict[OperationKind, Optional[float]]]
        if isinstance(cache_validity_seconds, Mapping):
            self._validity = {
                kind: _checked_duration(
                    cache_validity_seconds.get(kind, cache_validity_seconds.get(kind.value)),
                    f"kind={kind.value}",
                )
                for kind in OperationKind
            }
        else:
            self._validity = _checked_duration(cache_validity_seconds, "all kinds")

    def validity_for(self, kind: OperationKind) -> Optional[float]:
        """Validity window of a kind in seconds, or None when successes are never reused."""
        if isinstance(self._validity, dict):
            return self._validity[kind]
        return self._validity

    def is_fresh(self, request: Request) -> bool:
        """Whether a succeeded request is still within its validity window."""
        if not request.succeeded:
            return False
        duration = self.validity_for(request.kind)
        if duration is None:
            return False
        return self._clock() - request.finished_at < duration

    def find_reusable(self, kind: OperationKind, config: OperationConfig) -> Optional[Request]:
        """Most recent equal-config request that is in-flight or freshly succeeded."""
        return self._ledger.find(
            kind,
            lambda request: structural_equal(request.config, config)
            and (request.active or self.is_fresh(request)),
        )

    def reusable_for(self, kind: OperationKind, config: OperationConfig) -> Optional[Request]:
        """
        Request that makes launching ``kind`` with ``config`` unnecessary.

        Returns None when a new request should be launched, always so for
        forced configs.
        """
        if config.force:
            logger.debug(f"CacheGate.reusable_for: kind={kind.value} forced")
            return None

        reusable = self.find_reusable(kind, config)
        if reusable is not None:
            logger.debug(
                f"CacheGate.reusable_for: kind={kind.value} reusing id={reusable.id} "
                f"state={reusable.state.name}"
            )
        return reusable

    def should_admit(self, kind: OperationKind, config: OperationConfig) -> bool:
        """Whether a new request should be launched for ``kind`` and ``config``."""
        return self.reusable_for(kind, config) is None
