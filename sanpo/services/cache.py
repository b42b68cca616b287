import asyncio
import hashlib
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def make_cache_key(prefix: str, params: Dict[str, Any]) -> str:
    """Deterministic key for a set of request parameters"""

    key_str = json.dumps(params, sort_keys=True, ensure_ascii=False)
    hash_val = hashlib.sha256(key_str.encode()).hexdigest()
    return f"{prefix}:{hash_val}"


class AsyncCache(Generic[K, V]):
    """At-most-once-per-key memoization of async lookups.

    Concurrent ``get`` calls for the same key share one in-flight computation.
    Failed computations are dropped so the next call may retry. Entries never
    expire; the cache lives as long as the process.
    """

    def __init__(self, name: str = "cache") -> None:
        self.name = name
        self._values: Dict[K, V] = {}
        self._in_flight: Dict[K, "asyncio.Future[V]"] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    async def get(self, key: K, compute: Callable[[], Awaitable[V]]) -> V:
        if key in self._values:
            logger.debug(f"{self.name}: hit {key}")
            return self._values[key]

        task = self._in_flight.get(key)
        if task is None:
            logger.debug(f"{self.name}: miss {key}")
            task = asyncio.ensure_future(compute())
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._settle(key, done))
        else:
            logger.debug(f"{self.name}: joining in-flight {key}")

        # A cancelled waiter must not cancel the shared computation
        return await asyncio.shield(task)

    def _settle(self, key: K, task: "asyncio.Future[V]") -> None:
        self._in_flight.pop(key, None)
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.debug(f"{self.name}: not storing failed result for {key}")
            return
        self._values[key] = task.result()

    def clear(self) -> None:
        self._values.clear()
