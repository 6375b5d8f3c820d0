"""Async client for the read-only bookmarks graph endpoints."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError

from newsgraph.config import APIConfig, ExplorationConfig
from newsgraph.contracts import KeywordRankResponse, TimelineResponse
from newsgraph.errors import ConstructionError, TransportError

logger = logging.getLogger(__name__)


async def error_tag_from_response(response: httpx.Response, default_code: str) -> str:
    """Derive the opaque error tag surfaced to users for a failed response.

    The server ``detail`` field wins when the body is JSON and carries one;
    otherwise the tag falls back to the HTTP status code.

    Args:
        response: Non-successful HTTP response.
        default_code: Endpoint specific error prefix, e.g. ``"graph_error"``.

    Returns:
        str: Tag of the form ``"<code>:<detail>"`` or ``"<code>_<status>"``.
    """

    try:
        await response.aread()
        data = response.json()
    except ValueError:
        return f"{default_code}_{response.status_code}"
    if isinstance(data, Mapping) and data.get("detail"):
        return f"{default_code}:{data['detail']}"
    return f"{default_code}_{response.status_code}"


class BookmarksAPIClient:
    """Issue GET requests against the bookmarks API and decode the bodies."""

    def __init__(
        self,
        config: APIConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "BookmarksAPIClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def fetch_keywords(self, limit: Optional[int] = None) -> KeywordRankResponse:
        """Fetch the ranked keyword list used to seed the first exploration."""

        params = {"limit": limit or self._config.keyword_limit}
        body = await self._get_json("/bookmarks/keywords", params, "keywords_error")
        try:
            return KeywordRankResponse.model_validate(body)
        except ValidationError as exc:
            raise ConstructionError(f"malformed keyword list: {exc.error_count()} error(s)") from exc

    async def fetch_graph(self, keyword: str, exploration: ExplorationConfig) -> Dict[str, Any]:
        """Fetch the keyword and article graph centred on ``keyword``.

        The raw JSON body is returned so graph construction owns validation.
        """

        params = {
            "keyword": keyword,
            "depth": exploration.depth,
            "max_keyword_nodes": exploration.max_keyword_nodes,
            "max_articles_per_keyword": exploration.max_articles_per_keyword,
        }
        return await self._get_json("/bookmarks/graph", params, "graph_error")

    async def fetch_similarity_graph(self, keyword: str, exploration: ExplorationConfig) -> Dict[str, Any]:
        """Fetch the embedding-similarity graph rooted at ``keyword``."""

        params = {
            "keyword": keyword,
            "threshold": exploration.similarity_threshold,
            "limit": exploration.similarity_limit,
            "max_articles_per_keyword": exploration.max_articles_per_keyword,
        }
        return await self._get_json("/bookmarks/graph/similarity", params, "similarity_graph_error")

    async def fetch_timeline(self, days: Optional[int] = None) -> TimelineResponse:
        """Fetch recently saved articles for the timeline view."""

        params = {"days": days or self._config.timeline_days}
        body = await self._get_json("/bookmarks/timeline", params, "timeline_error")
        try:
            return TimelineResponse.model_validate(body)
        except ValidationError as exc:
            raise ConstructionError(f"malformed timeline: {exc.error_count()} error(s)") from exc

    async def _get_json(self, path: str, params: Mapping[str, Any], error_code: str) -> Dict[str, Any]:
        start_time = time.monotonic()
        try:
            response = await self._client.get(path, params=dict(params))
        except httpx.HTTPError as exc:
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                "Bookmarks API request raised an error",
                extra={"path": path, "latency_ms": latency_ms, "error": str(exc)},
            )
            raise TransportError(f"{error_code}_network") from exc
        latency_ms = (time.monotonic() - start_time) * 1000
        if response.status_code != httpx.codes.OK:
            tag = await error_tag_from_response(response, error_code)
            logger.warning(
                "Bookmarks API request failed with status",
                extra={"path": path, "status_code": response.status_code, "latency_ms": latency_ms},
            )
            raise TransportError(tag, status_code=response.status_code)
        try:
            body = response.json()
        except ValueError as exc:
            logger.warning("Bookmarks API returned non-JSON payload", extra={"path": path})
            raise TransportError(f"{error_code}_invalid_json", status_code=response.status_code) from exc
        if not isinstance(body, dict):
            raise ConstructionError(f"{path} returned a non-object JSON body")
        logger.debug(
            "Bookmarks API request succeeded",
            extra={"path": path, "status_code": response.status_code, "latency_ms": latency_ms},
        )
        return body


__all__ = ["BookmarksAPIClient", "error_tag_from_response"]
