"""Request policy: serve from cache, compute inline, or defer.

Each request walks ``validated -> cache-check -> {cached | computing |
deferring} -> responded``:

1. Validate ``pills`` (integral, ``1 <= pills <= MAX_PILLS``). Invalid input is
   answered with a 400 result before any collaborator is contacted.
2. Read the cache. A hit is answered immediately. A cache error is logged and
   the request falls through to step 3.
3. ``pills <= SYNCHRONOUS_THRESHOLD``: count inline, answer, and write the
   count back to the cache in a background task whose outcome is only logged.
4. ``pills > SYNCHRONOUS_THRESHOLD``: submit a deferred task and answer with
   its descriptor, or with a 500 result when submission fails.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .cache_client import CacheClientProtocol
from .counting import count_permutations
from .defer_client import DeferClient, DeferredTask
from .errors import RetrievalError, ServiceError, SubmissionError, ValidationError
from .metrics import CACHE_FAILURES, REQUEST_OUTCOMES

__all__ = [
    "MIN_PILLS",
    "MAX_PILLS",
    "SYNCHRONOUS_THRESHOLD",
    "INTERNAL_ERROR_MESSAGE",
    "PermutationResult",
    "PermutationService",
    "validate_pills",
]

logger = logging.getLogger(__name__)

MIN_PILLS = 1
MAX_PILLS = 47
# Largest prescription answered inside the ~30s hosting deadline; above it
# requests are deferred and never cached by this service.
SYNCHRONOUS_THRESHOLD = 43

INTERNAL_ERROR_MESSAGE = "Internal Error!"
MISSING_PILLS_MESSAGE = "You must provide the `pills` querystring parameter!"
INVALID_PILLS_MESSAGE = "Pills must be a valid number!"
RANGE_PILLS_MESSAGE = f"Pills must be a number between {MIN_PILLS} and {MAX_PILLS}!"

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True, slots=True)
class PermutationResult:
    """Caller-facing result descriptor and its HTTP-style status code."""

    status_code: int
    body: Mapping[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return bool(self.body.get("success"))

    @classmethod
    def complete(cls, permutations: int) -> "PermutationResult":
        return cls(
            200,
            {"success": True, "status": "complete", "permutations": permutations},
        )

    @classmethod
    def deferred(cls, task: DeferredTask) -> "PermutationResult":
        return cls(
            202, {"success": True, "status": "deferred", "task": task.to_dict()}
        )

    @classmethod
    def client_error(cls, message: str) -> "PermutationResult":
        return cls(400, {"success": False, "message": message})

    @classmethod
    def server_error(cls) -> "PermutationResult":
        return cls(500, {"success": False, "message": INTERNAL_ERROR_MESSAGE})

    def to_dict(self) -> dict[str, Any]:
        return dict(self.body)


def validate_pills(raw: object) -> int:
    """Return *raw* as a pill count or raise :class:`ValidationError`.

    Query strings arrive as text, so ASCII decimal integer strings are
    accepted; digit separators and non-ASCII digits are not.
    Floats are accepted only when they carry no fractional part.
    """

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(MISSING_PILLS_MESSAGE)
    if isinstance(raw, bool):
        raise ValidationError(INVALID_PILLS_MESSAGE)

    if isinstance(raw, int):
        pills = raw
    elif isinstance(raw, float):
        if not raw.is_integer():
            raise ValidationError(INVALID_PILLS_MESSAGE)
        pills = int(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if not _INTEGER_PATTERN.fullmatch(text):
            raise ValidationError(INVALID_PILLS_MESSAGE)
        pills = int(text)
    else:
        raise ValidationError(INVALID_PILLS_MESSAGE)

    if pills < MIN_PILLS or pills > MAX_PILLS:
        raise ValidationError(RANGE_PILLS_MESSAGE)
    return pills


class PermutationService:
    """Apply the cache / compute / defer policy to a single request.

    Cache writes started by :meth:`handle` run as background tasks that are
    tracked until they finish; call :meth:`drain` to wait for them.
    """

    def __init__(
        self,
        cache: CacheClientProtocol,
        defer: DeferClient,
        *,
        threshold: int = SYNCHRONOUS_THRESHOLD,
        counter: Callable[[int], int] = count_permutations,
    ) -> None:
        self._cache = cache
        self._defer = defer
        self._threshold = threshold
        self._counter = counter
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def handle(self, raw_pills: object) -> PermutationResult:
        try:
            pills = validate_pills(raw_pills)
        except ValidationError as exc:
            logger.info("request.invalid", extra={"pills": raw_pills})
            REQUEST_OUTCOMES.labels("client_error").inc()
            return PermutationResult.client_error(str(exc))

        try:
            lookup = await self._cache.read(pills)
        except RetrievalError:
            CACHE_FAILURES.labels("read").inc()
            logger.warning("cache.read_failed", exc_info=True, extra={"pills": pills})
        else:
            if lookup.hit:
                logger.info("cache.hit", extra={"pills": pills})
                REQUEST_OUTCOMES.labels("cached").inc()
                return PermutationResult.complete(lookup.permutations)
            logger.info("cache.miss", extra={"pills": pills})

        if pills <= self._threshold:
            permutations = self._counter(pills)
            self._schedule_cache_write(pills, permutations)
            REQUEST_OUTCOMES.labels("computed").inc()
            return PermutationResult.complete(permutations)

        try:
            task = await self._defer.submit(pills)
        except SubmissionError:
            logger.exception("defer.failed", extra={"pills": pills})
            REQUEST_OUTCOMES.labels("server_error").inc()
            return PermutationResult.server_error()

        REQUEST_OUTCOMES.labels("deferred").inc()
        return PermutationResult.deferred(task)

    def _schedule_cache_write(self, pills: int, permutations: int) -> None:
        task = asyncio.create_task(self._write_back(pills, permutations))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_back(self, pills: int, permutations: int) -> None:
        try:
            await self._cache.write(pills, permutations)
        except ServiceError:
            CACHE_FAILURES.labels("write").inc()
            logger.warning(
                "cache.write_failed", exc_info=True, extra={"pills": pills}
            )
        else:
            logger.info(
                "cache.write", extra={"pills": pills, "permutations": permutations}
            )

    async def drain(self) -> None:
        """Wait for every background cache write started so far."""

        while self._pending:
            pending = list(self._pending)
            self._pending.difference_update(pending)
            results = await asyncio.gather(*pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error("cache.write_crashed", exc_info=result)
