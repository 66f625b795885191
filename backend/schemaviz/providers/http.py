"""HttpMetadataProvider — async client for the dashboard's schema metadata API."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from schemaviz.engine.errors import MetadataProviderError
from schemaviz.models.metadata import TableStructure, TableSummary

logger = logging.getLogger(__name__)

HeaderSource = Callable[[], dict[str, str]]


def _segment(value: str) -> str:
    """Escape one path segment; quoted identifiers may contain `/`, `#` or `?`."""
    return quote(value, safe="")


def _error_message(response: httpx.Response) -> str:
    """Prefer the service's ``{"error": ...}`` body over the bare status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code} from {response.request.url}"


class HttpMetadataProvider:
    """Fetches table lists and structures over HTTP.

    *headers* is called on every request so the active database id and token
    always reflect the current application context.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[HeaderSource] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._headers = headers or dict
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._client = self._open()

    def _open(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """The shared client, reopened if a previous shutdown closed it."""
        if self._client.is_closed:
            logger.info("Reopening metadata client for %s", self._base_url)
            self._client = self._open()
        return self._client

    async def _get(self, path: str) -> Any:
        try:
            response = await self.client.get(path, headers=self._headers())
        except httpx.HTTPError as exc:
            raise MetadataProviderError(str(exc) or type(exc).__name__) from exc

        if response.is_error:
            raise MetadataProviderError(_error_message(response), status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise MetadataProviderError(f"Invalid JSON from {path}: {exc}") from exc

    async def list_tables(self, schema: str) -> list[TableSummary]:
        data = await self._get(f"/api/schema/{_segment(schema)}/tables")
        if not isinstance(data, list):
            # The dashboard treats a non-list payload as an empty schema
            logger.warning("Unexpected table list payload for schema '%s': %r", schema, type(data))
            return []
        try:
            return [TableSummary(**row) for row in data]
        except (TypeError, ValidationError) as exc:
            raise MetadataProviderError(f"Malformed table list for schema '{schema}': {exc}") from exc

    async def get_table_structure(self, schema: str, table: str) -> TableStructure:
        data = await self._get(f"/api/schema/{_segment(schema)}/table/{_segment(table)}/structure")
        try:
            return TableStructure(**data)
        except (TypeError, ValidationError) as exc:
            raise MetadataProviderError(f"Malformed structure for '{schema}.{table}': {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
