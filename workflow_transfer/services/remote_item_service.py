# ============================================================================
# Workflow Transfer - Remote Item Service
# ============================================================================
"""
HTTP client for the n8n public REST API.

Reads (``list_items``, ``get_item``, ``list_tags``) go through a
``CacheStore`` and raise ``RemoteServiceError`` on failure. Mutations
(``mutate_item``, ``apply_tags``) bypass the cache, invalidate affected
entries and return a classified ``MutationResult`` instead of raising, so
the batch engine can branch on not-found, conflict, transient and fatal
outcomes as plain values.

Endpoints:
    GET  /api/v1/workflows            (paginated with nextCursor)
    GET  /api/v1/workflows/{id}
    POST /api/v1/workflows            (create)
    PUT  /api/v1/workflows/{id}       (update)
    PUT  /api/v1/workflows/{id}/tags
    GET  /api/v1/tags, POST /api/v1/tags

Usage:
    async with RemoteItemService("https://n8n.example.com", api_key) as service:
        items = await service.list_items({"active": True})
        result = await service.mutate_item(None, payload)
        if result.ok:
            print(result.item["id"])
"""

import asyncio
import json
import logging
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..config import settings
from ..core.cache_store import CacheStore
from ..core.errors import (
    ErrorCategory,
    RemoteServiceError,
    classify_exception,
    classify_status,
    parse_retry_after,
)
from ..models.result_models import MutationResult

logger = logging.getLogger("workflow_transfer.remote_item_service")

API_PREFIX = "/api/v1"
PAGE_LIMIT = 100


def mask_api_key(api_key: Optional[str]) -> str:
    if not api_key:
        return "(none)"
    if len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"


def mask_url(url: Optional[str]) -> str:
    """Strip userinfo and query from a URL for logging."""
    if not url:
        return "(none)"
    parts = urlsplit(url)
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, host, parts.path, "", ""))


class RateLimiter:
    """Sliding one-second window capping requests per second. 0 disables."""

    def __init__(self, max_per_second: float):
        self.max_per_second = max_per_second
        self._sent: Deque[float] = deque()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        if self.max_per_second <= 0:
            return
        async with self._lock:
            while True:
                now = time.monotonic()
                while self._sent and now - self._sent[0] >= 1.0:
                    self._sent.popleft()
                if len(self._sent) < self.max_per_second:
                    self._sent.append(now)
                    return
                await asyncio.sleep(1.0 - (now - self._sent[0]))


class RemoteItemService:
    """n8n API client with caching, rate limiting and outcome classification."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        *,
        name: str = "remote",
        timeout: Optional[float] = None,
        api_key_header: Optional[str] = None,
        max_requests_per_second: Optional[float] = None,
        cache: Optional[CacheStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError(f"Base URL is required for the {name} instance")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.name = name
        self.timeout = timeout or settings.request_timeout
        self.api_key_header = api_key_header or settings.api_key_header
        self.cache = cache or CacheStore(ttl_seconds=settings.cache_ttl_seconds)
        self._rate_limiter = RateLimiter(
            settings.max_requests_per_second if max_requests_per_second is None else max_requests_per_second
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._stats = self._empty_stats()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=self._build_headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteItemService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers[self.api_key_header] = self.api_key
        return headers

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send one request. Transport errors propagate as httpx exceptions."""
        await self._rate_limiter.acquire()
        client = await self._get_client()
        self._stats["total_requests"] += 1
        try:
            response = await client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.HTTPError:
            self._stats["failed_requests"] += 1
            raise
        if response.status_code < 400:
            self._stats["successful_requests"] += 1
        else:
            self._stats["failed_requests"] += 1
            if response.status_code == 429:
                self._stats["rate_limited_requests"] += 1
        return response

    async def _read(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._request("GET", path, params=params)
        except httpx.HTTPError as e:
            category = classify_exception(e)
            logger.warning(f"[{self.name}] GET {path} failed: {category.value} ({e.__class__.__name__})")
            raise RemoteServiceError(f"GET {path} failed: {e.__class__.__name__}", category) from e

        category = classify_status(response.status_code)
        if category is not None:
            message = f"GET {path} returned {response.status_code}: {_error_message(response)}"
            logger.warning(f"[{self.name}] {message}")
            raise RemoteServiceError(
                message,
                category,
                status_code=response.status_code,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        return _json_or_none(response)

    async def _mutate(self, method: str, path: str, body: Any, item_id: Optional[str]) -> MutationResult:
        try:
            response = await self._request(method, path, json=body)
        except httpx.HTTPError as e:
            category = classify_exception(e)
            logger.warning(f"[{self.name}] {method} {path} failed: {category.value} ({e.__class__.__name__})")
            return MutationResult(category=category, message=f"{e.__class__.__name__}: {e}")

        category = classify_status(response.status_code)
        if category is None or category == ErrorCategory.CONFLICT:
            self._invalidate(item_id)
        if category is None:
            data = _json_or_none(response)
            return MutationResult(
                item=data if isinstance(data, dict) else None,
                status_code=response.status_code,
            )

        message = f"{method} {path} returned {response.status_code}: {_error_message(response)}"
        log = logger.info if category.is_benign else logger.warning
        log(f"[{self.name}] {message}")
        return MutationResult(
            category=category,
            status_code=response.status_code,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
            message=message,
        )

    def _invalidate(self, item_id: Optional[str]) -> None:
        if item_id:
            self.cache.invalidate(f"get:{item_id}")
        self.cache.invalidate_prefix("list:")

    # =========================================================================
    # ITEMS
    # =========================================================================

    async def list_items(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        List all items, following ``nextCursor`` pagination.

        Args:
            filters: Query filters passed to the API (e.g. ``active``, ``tags``, ``name``)

        Raises:
            RemoteServiceError: If any page cannot be fetched
        """
        filters = dict(filters or {})
        key = "list:" + json.dumps(filters, sort_keys=True, default=str)
        return await self.cache.get(key, lambda: self._fetch_all(filters))

    async def _fetch_all(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        params = {k: _query_value(v) for k, v in filters.items() if v is not None}
        params.setdefault("limit", PAGE_LIMIT)
        items: List[Dict[str, Any]] = []
        seen_cursors = set()
        while True:
            body = await self._read("/workflows", params=params)
            page, cursor = _unwrap_page(body)
            items.extend(page)
            if not cursor or cursor in seen_cursors:
                break
            seen_cursors.add(cursor)
            params = {**params, "cursor": cursor}
        logger.debug(f"[{self.name}] Listed {len(items)} items")
        return items

    async def get_item(self, item_id: str) -> Dict[str, Any]:
        """
        Fetch one item by id.

        Raises:
            RemoteServiceError: With category ``not_found`` for unknown ids
        """
        return await self.cache.get(f"get:{item_id}", lambda: self._read(f"/workflows/{item_id}"))

    async def mutate_item(self, item_id: Optional[str], payload: Dict[str, Any]) -> MutationResult:
        """
        Create (``item_id`` is None) or update an item.

        Returns:
            MutationResult; never raises for remote failures
        """
        if item_id is None:
            return await self._mutate("POST", "/workflows", payload, None)
        return await self._mutate("PUT", f"/workflows/{item_id}", payload, item_id)

    async def apply_tags(self, item_id: str, tag_ids: List[str]) -> MutationResult:
        return await self._mutate("PUT", f"/workflows/{item_id}/tags", {"tagIds": list(tag_ids)}, item_id)

    # =========================================================================
    # TAGS
    # =========================================================================

    async def list_tags(self) -> List[Dict[str, Any]]:
        async def fetch():
            page, _ = _unwrap_page(await self._read("/tags"))
            return page
        return await self.cache.get("tags:", fetch)

    async def ensure_tag(self, tag_name: str) -> Dict[str, Any]:
        """
        Return the tag named ``tag_name``, creating it when missing.

        A 409 on create means another writer created it first; the tag list
        is re-read in that case.

        Raises:
            RemoteServiceError: If the tag can be neither found nor created
        """
        for tag in await self.list_tags():
            if tag.get("name") == tag_name:
                return tag

        result = await self._mutate("POST", "/tags", {"name": tag_name}, None)
        self.cache.invalidate("tags:")
        if result.ok and result.item:
            logger.info(f"[{self.name}] Created tag '{tag_name}'")
            return result.item
        if result.category == ErrorCategory.CONFLICT:
            for tag in await self.list_tags():
                if tag.get("name") == tag_name:
                    return tag
        raise RemoteServiceError(
            f"Could not create tag '{tag_name}': {result.message}",
            result.category or ErrorCategory.CLIENT_ERROR,
            status_code=result.status_code,
        )

    # =========================================================================
    # DIAGNOSTICS
    # =========================================================================

    async def test_connection(self) -> Dict[str, Any]:
        """
        Check that the instance is reachable and the API key is accepted.

        Returns:
            Dict with ``success``, ``message``, ``url`` and ``latency_ms``
        """
        started = time.monotonic()
        try:
            await self._read("/workflows", params={"limit": 1})
        except RemoteServiceError as e:
            return {
                "success": False,
                "message": str(e),
                "category": e.category.value,
                "url": mask_url(self.base_url),
                "latency_ms": round((time.monotonic() - started) * 1000, 1),
            }
        return {
            "success": True,
            "message": f"Connected to {self.name} instance",
            "url": mask_url(self.base_url),
            "latency_ms": round((time.monotonic() - started) * 1000, 1),
        }

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "rate_limited_requests": 0,
        }

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "cache": self.cache.stats()}

    def reset_stats(self) -> None:
        self._stats = self._empty_stats()

    def __repr__(self) -> str:
        return f"RemoteItemService(name={self.name!r}, url={mask_url(self.base_url)!r}, api_key={mask_api_key(self.api_key)!r})"


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    body = _json_or_none(response)
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or "error"


def _unwrap_page(body: Any):
    """Return ``(items, next_cursor)`` from a list response in either shape."""
    if isinstance(body, list):
        return [i for i in body if isinstance(i, dict)], None
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, list):
            return [i for i in data if isinstance(i, dict)], body.get("nextCursor")
    return [], None


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return value
