from typing import Any

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from response_cache.api.dependencies import HandlerDep, build_lifespan
from response_cache.config import CacheConfig, settings
from response_cache.dto import (
    AlertItem,
    CacheEntryResponse,
    CacheGetResponse,
    CacheRemoveResponse,
    CacheSetResponse,
    CacheStatsResponse,
    CleanupResponse,
    ClearCacheResponse,
    GetCacheRequest,
    HealthCheckResponse,
    SetCacheRequest,
    WarmCacheRequest,
    WarmupResponse,
)

API_VERSION = "0.1.0"


def create_app(config: CacheConfig | None = None) -> FastAPI:
    """Build the HTTP app around one cache instance.

    Args:
        config: Cache options. Defaults to the environment settings.
    """
    app = FastAPI(
        title="Response Cache API",
        description="Local context-aware response cache with similarity matching",
        version=API_VERSION,
        lifespan=build_lifespan(config),
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Response Cache API",
            "version": API_VERSION,
            "description": "Local context-aware response cache with similarity matching",
            "endpoints": {
                "cache": "/cache",
                "stats": "/stats",
                "analytics": "/analytics",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: HandlerDep) -> HealthCheckResponse:
        return await handler.health_check()

    @app.post("/cache/get", response_model=CacheGetResponse)
    async def get_cache(request: GetCacheRequest, handler: HandlerDep) -> CacheGetResponse:
        """Look up a response by query and context (direct or similarity hit)."""
        return await handler.get_cache(request)

    @app.post("/cache/set", response_model=CacheSetResponse)
    async def set_cache(request: SetCacheRequest, handler: HandlerDep) -> CacheSetResponse:
        return await handler.set_cache(request)

    @app.post("/cache/cleanup", response_model=CleanupResponse)
    async def cleanup(handler: HandlerDep) -> CleanupResponse:
        """Run an eviction pass now."""
        return await handler.cleanup()

    @app.post("/cache/warm", response_model=WarmupResponse)
    async def warm_cache(request: WarmCacheRequest, handler: HandlerDep) -> WarmupResponse:
        return await handler.warm_cache(request)

    @app.get("/cache/warm/stats", response_model=dict[str, Any])
    async def get_warming_stats(handler: HandlerDep) -> dict[str, Any]:
        """Warming configuration and the outcome of the last run."""
        return await handler.get_warming_stats()

    @app.get("/cache/entries/{cache_key}", response_model=CacheEntryResponse)
    async def get_entry(cache_key: str, handler: HandlerDep) -> CacheEntryResponse:
        """Metadata of one entry; does not count as an access."""
        return await handler.get_entry(cache_key)

    @app.delete("/cache", response_model=ClearCacheResponse)
    async def clear_cache(handler: HandlerDep) -> ClearCacheResponse:
        """Clear all entries from the cache."""
        return await handler.clear_cache()

    @app.delete("/cache/{cache_key}", response_model=CacheRemoveResponse)
    async def remove_entry(cache_key: str, handler: HandlerDep) -> CacheRemoveResponse:
        return await handler.remove_entry(cache_key)

    @app.get("/stats", response_model=CacheStatsResponse)
    async def get_stats(handler: HandlerDep) -> CacheStatsResponse:
        return await handler.get_stats()

    @app.get("/analytics/report", response_model=dict[str, Any])
    async def get_report(
        handler: HandlerDep,
        start: float | None = Query(None, description="Window start (epoch ms)"),
        end: float | None = Query(None, description="Window end (epoch ms)"),
    ) -> dict[str, Any]:
        """Analytics report; defaults to the last 24 hours."""
        return await handler.get_report(start, end)

    @app.get("/analytics/alerts", response_model=list[AlertItem])
    async def get_alerts(handler: HandlerDep, include_resolved: bool = True) -> list[AlertItem]:
        return await handler.get_alerts(include_resolved)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "response_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
