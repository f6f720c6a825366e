"""Request DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class GetCacheRequest(BaseModel):
    """Request DTO for a cache lookup.

    The handler will convert this to internal calls to the service layer.
    """

    query: str = Field(..., description="The query to look up", min_length=1)
    context: dict[str, Any] | None = Field(
        None,
        description="Query context (projectType, language, framework, ...)",
    )
    skip_similarity: bool = Field(False, description="Only accept a direct hit")


class SetCacheRequest(BaseModel):
    """Request DTO for storing a response."""

    query: str = Field(..., description="The original query", min_length=1)
    context: dict[str, Any] | None = Field(None, description="Query context")
    response: Any = Field(..., description="The response to cache (any JSON value)")
    ttl_ms: int | None = Field(None, description="Time to live in milliseconds", gt=0)
    compress: bool | None = Field(None, description="Override the cache's compression setting")


class WarmCacheRequest(BaseModel):
    """Request DTO for cache warming."""

    queries: list[str] = Field(
        default_factory=list,
        description="Extra queries added to the built-in and configured ones",
    )
