"""FastAPI front door for the pill permutation service.

``GET /permutations?pills=N`` answers with the result descriptor produced by
:class:`~pill_permutations.orchestrator.PermutationService`. Settings are
resolved on every request so that a missing ``cacheUrl`` or ``deferUrl``
turns each request into a 500 instead of preventing the app from starting.
Background cache writes are drained after the response has been sent.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.background import BackgroundTask
from starlette.responses import JSONResponse, Response

from .cache_client import CacheClientProtocol, HttpCacheClient, RedisCacheClient
from .config import Settings
from .defer_client import DeferClient, new_task_id
from .errors import ConfigurationError
from .metrics import REQUEST_LATENCY, REQUEST_OUTCOMES
from .orchestrator import PermutationResult, PermutationService

__all__ = ["create_app", "ServiceFactory"]

logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


class ServiceFactory:
    """Build a :class:`PermutationService` per request from shared clients.

    The HTTP client and any Redis connections are created on first use and
    reused afterwards.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        redis_factory: Optional[Callable[..., RedisCacheClient]] = None,
        task_id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._redis_factory = redis_factory or RedisCacheClient.from_url
        self._redis_clients: dict[str, RedisCacheClient] = {}
        self._task_id_factory = task_id_factory or new_task_id
        self._lock = asyncio.Lock()

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        async with self._lock:
            if self._http_client is None:
                self._http_client = httpx.AsyncClient()
            return self._http_client

    async def _get_cache(self, settings: Settings) -> CacheClientProtocol:
        if settings.uses_redis_cache:
            async with self._lock:
                client = self._redis_clients.get(settings.cache_url)
                if client is None:
                    try:
                        client = self._redis_factory(
                            settings.cache_url, timeout=settings.request_timeout
                        )
                    except ValueError as exc:
                        raise ConfigurationError(
                            f"Invalid Redis cache URL: {exc}"
                        ) from exc
                    self._redis_clients[settings.cache_url] = client
                return client
        return HttpCacheClient(
            settings.cache_url,
            await self._get_http_client(),
            timeout=settings.request_timeout,
        )

    async def build(self, settings: Settings) -> PermutationService:
        cache = await self._get_cache(settings)
        http_client = await self._get_http_client()
        defer = DeferClient(
            settings.defer_url,
            http_client,
            id_factory=self._task_id_factory,
            timeout=settings.request_timeout,
        )
        return PermutationService(cache, defer)

    async def aclose(self) -> None:
        for client in self._redis_clients.values():
            await client.close()
        self._redis_clients.clear()
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


def _respond(
    result: PermutationResult, background: Optional[BackgroundTask] = None
) -> JSONResponse:
    return JSONResponse(
        result.to_dict(),
        status_code=result.status_code,
        headers=CORS_HEADERS,
        background=background,
    )


def create_app(
    *,
    settings_provider: Callable[[], Settings] = Settings.from_env,
    services: Optional[ServiceFactory] = None,
) -> FastAPI:
    """Create a configured FastAPI application.

    Parameters
    ----------
    settings_provider:
        Callable returning :class:`Settings`; raising
        :class:`ConfigurationError` makes the request fail with a 500.
    services:
        Factory for per-request services. A default factory owning its own
        ``httpx.AsyncClient`` is created when omitted.
    """

    factory = services or ServiceFactory()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await factory.aclose()

    app = FastAPI(lifespan=lifespan)
    app.state.services = factory

    @app.middleware("http")
    async def metrics_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        REQUEST_LATENCY.labels(request.method, request.url.path).observe(duration)
        return response

    @app.get("/permutations")
    async def permutations(request: Request) -> JSONResponse:
        try:
            settings = settings_provider()
            service = await factory.build(settings)
        except ConfigurationError:
            logger.exception("config.invalid")
            REQUEST_OUTCOMES.labels("server_error").inc()
            return _respond(PermutationResult.server_error())

        result = await service.handle(request.query_params.get("pills"))
        return _respond(result, BackgroundTask(service.drain))

    @app.get("/health/live")
    async def live() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
