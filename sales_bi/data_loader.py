# data_loader.py
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx

from . import config

logger = logging.getLogger(__name__)


@dataclass
class FetchError:
    """One failed page fetch, reported back to the client under `_debug.errors`."""

    collection: str
    status: Optional[int]
    message: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "status": self.status,
            "message": self.message,
            "url": self.url,
        }


@dataclass
class CollectionQuery:
    """What to fetch for one named input of a dashboard."""

    collection: str
    fields: Optional[str] = None
    filters: Dict[str, str] = field(default_factory=dict)
    paginate: bool = True

    def field_list(self) -> str:
        if self.fields:
            return self.fields
        return config.COLLECTION_FIELDS.get(self.collection, "*")


def between_filter(path: str, from_date: Optional[str], to_date: Optional[str]) -> Dict[str, str]:
    """
    Directus `_between` filter on a (possibly nested) date field.

        between_filter("invoice_no.invoice_date", "2024-01-01", "2024-01-31")
        -> {"filter[invoice_no][invoice_date][_between]": "[2024-01-01,2024-01-31 23:59:59]"}

    Returns no filter unless both ends are given.
    """
    if not (from_date and to_date):
        return {}
    key = "filter" + "".join(f"[{part}]" for part in path.split(".")) + "[_between]"
    return {key: f"[{from_date},{to_date} 23:59:59]"}


def eq_filter(path: str, value: Any) -> Dict[str, str]:
    if value is None or value == "":
        return {}
    key = "filter" + "".join(f"[{part}]" for part in path.split(".")) + "[_eq]"
    return {key: str(value)}


class DirectusClient:
    """
    Read-only client for the Directus item store.

    Every failure (non-2xx status, timeout, network error, malformed body)
    degrades to an empty page and a FetchError appended to the caller's
    error list; nothing here raises for upstream trouble.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url if base_url is not None else config.DIRECTUS_URL).rstrip("/")
        self.token = token if token is not None else config.DIRECTUS_TOKEN
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self.page_size = page_size or config.PAGE_SIZE
        self.max_pages = max_pages or config.MAX_PAGES
        self.transport = transport

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._get_headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _fetch_page(
        self,
        client: httpx.AsyncClient,
        collection: str,
        params: Dict[str, Any],
        errors: List[FetchError],
    ) -> List[Dict[str, Any]]:
        request = client.build_request("GET", f"/items/{collection}", params=params)
        url = str(request.url)

        try:
            response = await client.send(request)
        except httpx.TimeoutException:
            logger.warning("⏰ [%s] timed out after %ss: %s", collection, self.timeout, url)
            errors.append(FetchError(collection, None, f"Timeout after {self.timeout}s", url))
            return []
        except httpx.HTTPError as e:
            logger.warning("🌐 [%s] request failed: %s", collection, e)
            errors.append(FetchError(collection, None, str(e) or e.__class__.__name__, url))
            return []

        if not response.is_success:
            text = response.text[:200]
            logger.warning("❌ [%s] HTTP %s: %s", collection, response.status_code, url)
            errors.append(
                FetchError(collection, response.status_code, f"Directus request failed. {text}", url)
            )
            return []

        try:
            payload = response.json()
        except ValueError as e:
            errors.append(FetchError(collection, response.status_code, f"Invalid JSON: {e}", url))
            return []

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            errors.append(
                FetchError(collection, response.status_code, "Response has no data list", url)
            )
            return []
        return data

    async def _fetch_with(
        self,
        client: httpx.AsyncClient,
        query: CollectionQuery,
        errors: List[FetchError],
    ) -> List[Dict[str, Any]]:
        base_params = {"fields": query.field_list(), **query.filters}

        if not query.paginate:
            records = await self._fetch_page(
                client, query.collection, {**base_params, "limit": -1}, errors
            )
            logger.info("✅ [%s] %s records", query.collection, len(records))
            return records

        records: List[Dict[str, Any]] = []
        offset = 0
        for _ in range(self.max_pages):
            params = {**base_params, "limit": self.page_size, "offset": offset}
            chunk = await self._fetch_page(client, query.collection, params, errors)
            records.extend(chunk)
            if len(chunk) < self.page_size:
                break
            offset += self.page_size
        else:
            logger.warning("⚠️  [%s] stopped after %s pages", query.collection, self.max_pages)

        logger.info("✅ [%s] %s records", query.collection, len(records))
        return records

    async def fetch(
        self,
        collection: str,
        fields: Optional[str] = None,
        filters: Optional[Dict[str, str]] = None,
        errors: Optional[List[FetchError]] = None,
        paginate: bool = True,
    ) -> List[Dict[str, Any]]:
        """Fetches a single collection."""
        errors = errors if errors is not None else []
        query = CollectionQuery(collection, fields, filters or {}, paginate)
        async with self._client() as client:
            return await self._fetch_with(client, query, errors)

    async def fetch_collections(
        self,
        queries: Mapping[str, CollectionQuery],
        errors: List[FetchError],
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Fetches every query concurrently and returns ``{name: records}``.
        Returns only after all fetches resolved or degraded to empty.
        """
        names = list(queries)
        async with self._client() as client:
            results = await asyncio.gather(
                *(self._fetch_with(client, queries[name], errors) for name in names)
            )
        return dict(zip(names, results))


def client_from_config(settings: Mapping[str, Any]) -> DirectusClient:
    """Builds a client from a Flask config mapping."""
    return DirectusClient(
        base_url=settings.get("DIRECTUS_URL"),
        token=settings.get("DIRECTUS_TOKEN"),
        timeout=settings.get("DIRECTUS_TIMEOUT"),
        page_size=settings.get("DIRECTUS_PAGE_SIZE"),
        max_pages=settings.get("DIRECTUS_MAX_PAGES"),
        transport=settings.get("DIRECTUS_TRANSPORT"),
    )
