"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from response_cache.config import CacheConfig
from response_cache.handlers import CacheHandler
from response_cache.services import CacheService


def get_cache_service(request: Request) -> CacheService:
    """Dependency injection for CacheService from app.state.

    Raises:
        RuntimeError: If service is not initialized
    """
    service = getattr(request.app.state, "cache_service", None)
    if service is None:
        raise RuntimeError("CacheService not initialized. Check lifespan setup.")
    return service


def get_handler(request: Request) -> CacheHandler:
    """Dependency injection for CacheHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "cache_handler", None)
    if handler is None:
        raise RuntimeError("CacheHandler not initialized. Check lifespan setup.")
    return handler


def build_lifespan(
    config: CacheConfig | None = None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Create the lifespan context manager for an app.

    Args:
        config: Cache options. Defaults to the environment settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initializes all layers and stores them in app.state.

        1. Service (business logic, owns the file repository)
        2. Handler (HTTP endpoints)

        The service is shut down, flushing metadata and analytics, on exit.
        """
        cache_service = CacheService(config=config or CacheConfig.from_settings())
        cache_handler = CacheHandler(cache_service=cache_service)

        app.state.cache_service = cache_service
        app.state.cache_handler = cache_handler

        print("✓ Cache service initialized")
        print(f"✓ Cache directory: {cache_service.config.cache_dir}")
        print(f"✓ Similarity threshold: {cache_service.config.similarity_threshold}")
        print(f"✓ Health: {await cache_service.is_healthy()}")

        try:
            yield
        finally:
            await cache_service.shutdown()
            del app.state.cache_handler
            del app.state.cache_service
            print("✓ Cache service shut down")

    return lifespan


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[CacheHandler, Depends(get_handler)]
ServiceDep = Annotated[CacheService, Depends(get_cache_service)]
