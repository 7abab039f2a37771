"""
Entity identity: key extraction with a generated fallback.
"""
import logging
import secrets
import time
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger(__name__)

KeyExtractor = Callable[[Any], Any]
KeyGenerator = Callable[[Any], Any]


def default_key_extractor(entity: Any) -> Any:
    """Read ``id`` from a mapping entity, or the ``id`` attribute of an object."""
    if isinstance(entity, Mapping):
        return entity.get("id")
    return getattr(entity, "id", None)


def default_key_generator(entity: Any = None) -> str:
    """Time-ordered unique token: millisecond timestamp plus random suffix."""
    return f"{int(time.time() * 1000):x}-{secrets.token_hex(6)}"


class KeyStrategy:
    """
    Extracts or generates the identity key of an entity.

    Keys are always returned as strings so that extracted and configured keys
    address the same slot in the materialized collection.
    """

    def __init__(
        self,
        key_extractor: Optional[KeyExtractor] = None,
        key_generator: Optional[KeyGenerator] = None,
    ) -> None:
        self._extractor = key_extractor or default_key_extractor
        self._generator = key_generator or default_key_generator

    def extract(self, entity: Any) -> Optional[str]:
        """Return the entity key, or None when the entity has no identity yet."""
        try:
            key = self._extractor(entity)
        except Exception as error:
            logger.debug(f"KeyStrategy.extract: extractor failed ({error!r}), treating key as absent")
            return None
        if key is None or key == "":
            return None
        return str(key)

    def generate(self, entity: Any) -> str:
        """Generate a fresh key for an entity that has none."""
        return str(self._generator(entity))

    def key_for(self, entity: Any) -> str:
        """Extracted key, falling back to a generated one."""
        key = self.extract(entity)
        if key is None:
            key = self.generate(entity)
            logger.debug(f"KeyStrategy.key_for: generated key={key}")
        return key
