"""HTTP handlers for cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import time
from typing import Any

from fastapi import HTTPException, status

from response_cache.analytics import CacheAnalytics
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
from response_cache.entities import CacheOperationOptions
from response_cache.errors import NotFoundError
from response_cache.services import CacheService


class CacheHandler:
    """HTTP handlers for cache operations.

    This handler delegates business logic to CacheService
    and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Setting appropriate status codes
    - Error handling and responses

    Example:
        ```python
        from response_cache.services import CacheService
        from response_cache.handlers import CacheHandler

        cache_service = CacheService.create()
        handler = CacheHandler(cache_service=cache_service)

        # Use in FastAPI route
        @app.post("/cache/get", response_model=CacheGetResponse)
        async def get_cache(request: GetCacheRequest):
            return await handler.get_cache(request)
        ```
    """

    def __init__(self, cache_service: CacheService) -> None:
        """Initialize the cache handler.

        Args:
            cache_service: The cache service for business logic (required).
        """
        self._cache = cache_service

    async def get_cache(self, request: GetCacheRequest) -> CacheGetResponse:
        """Handle POST /cache/get requests.

        Raises:
            HTTPException: If an error occurs during the lookup
        """
        try:
            start_time = time.perf_counter()
            response = await self._cache.get(
                request.query,
                request.context,
                CacheOperationOptions(skip_similarity=request.skip_similarity),
            )
            lookup_time_ms = (time.perf_counter() - start_time) * 1000

            return CacheGetResponse(
                query=request.query,
                cache_key=self._cache.generate_cache_key(request.query, request.context),
                is_hit=response is not None,
                response=response,
                lookup_time_ms=lookup_time_ms,
            )

        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to look up cache: {e}",
            ) from e

    async def set_cache(self, request: SetCacheRequest) -> CacheSetResponse:
        """Handle POST /cache/set requests.

        Raises:
            HTTPException: If an error occurs during storage
        """
        try:
            cache_key = await self._cache.set(
                request.query,
                request.context,
                request.response,
                CacheOperationOptions(ttl=request.ttl_ms, compress=request.compress),
            )
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to store entry: {e}",
            ) from e

        if cache_key is None:
            return CacheSetResponse(success=False, message="Entry was not cached")
        return CacheSetResponse(success=True, cache_key=cache_key, message="Entry stored successfully")

    async def remove_entry(self, cache_key: str) -> CacheRemoveResponse:
        """Handle DELETE /cache/{cache_key} requests.

        Raises:
            HTTPException: 404 if the key is unknown
        """
        removed = await self._cache.remove(cache_key)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Cache key not found: {cache_key}",
            )
        return CacheRemoveResponse(success=True, cache_key=cache_key, message="Entry removed")

    async def get_entry(self, cache_key: str) -> CacheEntryResponse:
        """Handle GET /cache/entries/{cache_key} requests.

        Raises:
            HTTPException: 404 if the key is unknown
        """
        try:
            entry = self._cache.get_entry(cache_key)
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return CacheEntryResponse(cache_key=cache_key, **entry.model_dump(exclude={"raw_size"}))

    async def get_warming_stats(self) -> dict[str, Any]:
        """Handle GET /cache/warm/stats requests."""
        return self._cache.get_warming_stats()

    async def cleanup(self) -> CleanupResponse:
        """Handle POST /cache/cleanup requests."""
        try:
            result = await self._cache.cleanup()
            return CleanupResponse.model_validate(result)
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to clean up cache: {e}",
            ) from e

    async def warm_cache(self, request: WarmCacheRequest) -> WarmupResponse:
        """Handle POST /cache/warm requests."""
        try:
            result = await self._cache.warm_cache(request.queries)
            return WarmupResponse.model_validate(result)
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to warm cache: {e}",
            ) from e

    async def clear_cache(self) -> ClearCacheResponse:
        """Handle DELETE /cache requests.

        Raises:
            HTTPException: If the cache could not be cleared
        """
        if not await self._cache.clear_cache():
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to clear cache",
            )
        return ClearCacheResponse(success=True, message="Cache cleared successfully")

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /stats requests."""
        try:
            return CacheStatsResponse.model_validate(self._cache.get_stats())
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get stats: {e}",
            ) from e

    async def get_report(self, start: float | None = None, end: float | None = None) -> dict[str, Any]:
        """Handle GET /analytics/report requests."""
        return self._analytics().generate_report(start, end).to_dict()

    async def get_alerts(self, include_resolved: bool = True) -> list[AlertItem]:
        """Handle GET /analytics/alerts requests."""
        return [
            AlertItem(
                type=alert.type.value,
                severity=alert.severity.value,
                message=alert.message,
                value=alert.value,
                threshold=alert.threshold,
                timestamp=alert.timestamp,
                resolved=alert.resolved,
            )
            for alert in self._analytics().get_alerts(include_resolved)
        ]

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        is_healthy = await self._cache.is_healthy()

        return HealthCheckResponse(
            status="healthy" if is_healthy else "unhealthy",
            cache_healthy=is_healthy,
            entry_count=len(self._cache.metadata.entries),
        )

    def _analytics(self) -> CacheAnalytics:
        analytics = self._cache.analytics
        if analytics is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Analytics are disabled for this cache",
            )
        return analytics
