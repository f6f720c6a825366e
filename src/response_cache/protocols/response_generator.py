"""Response generator protocol.

The cache never produces answers itself. Whatever computes a response on a
miss (an LLM client, a rules engine, a test fake) can be handed to the cache
so warming can populate entries instead of only precomputing keys.
"""

from typing import Any, Protocol, runtime_checkable

from response_cache.models import CacheContext


@runtime_checkable
class ResponseGenerator(Protocol):
    """Protocol for response-producing collaborators."""

    async def generate(self, query: str, context: CacheContext) -> Any:
        """Produce a response for ``query`` asked in ``context``.

        Returns:
            Any JSON-serializable response
        """
        ...
