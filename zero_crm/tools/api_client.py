"""
zero_crm/tools/api_client.py
============================

Async HTTP client for the Zero CRM REST API.

Every entity type is exposed through the same five endpoints::

    GET    /api/<entity>            list (where, fields, limit, offset, orderBy)
    GET    /api/<entity>/<id>       fetch one
    POST   /api/<entity>            create
    PATCH  /api/<entity>/<id>       partial update
    DELETE /api/<entity>/<id>       delete (``archive=true`` for soft delete)

The underlying ``httpx.AsyncClient`` is created on first use and reused for
the life of the process. Non-2xx responses and transport failures are raised
as ``ZeroAPIError`` with sanitised messages; the bearer key never appears in
an error or a log line.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import Config
from .error_handler import ErrorHandler
from .exceptions import ZeroAPIError
from .filters import ListQuery
from .models import ListPage, Record

logger = logging.getLogger(__name__)

ENTITY_TYPES = (
    "companies",
    "contacts",
    "deals",
    "tasks",
    "notes",
    "activities",
    "emailThreads",
    "calendarEvents",
    "comments",
    "issues",
    "lists",
    "columns",
    "pipelineStages",
)


def _unwrap(body: Any) -> Any:
    """Single-record endpoints answer either ``record`` or ``{"data": record}``."""
    if isinstance(body, dict) and "id" not in body and isinstance(body.get("data"), dict):
        return body["data"]
    return body


def _backend_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] if response.text else None
    if not isinstance(body, dict):
        return None
    content = body.get("message") or body.get("error")
    if isinstance(content, dict):
        content = content.get("message")
    return str(content) if content else None


class ZeroAPIClient:
    """Thin async wrapper around the Zero REST API.

    Parameters
    ----------
    config:
        Supplies the API key, base URL and timeout.
    transport:
        Optional ``httpx`` transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if not self.config.api_key:
            raise ValueError("ZERO_API_KEY environment variable is not set")
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_url,
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        client = await self._get_client()
        logger.debug("%s %s params=%s", method, path, params)

        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise ZeroAPIError(f"{method} {path} timed out", error_type="RequestFailed") from e
        except httpx.HTTPError as e:
            raise ZeroAPIError(
                f"{method} {path} failed: {type(e).__name__}", error_type="RequestFailed"
            ) from e

        if response.status_code >= 400:
            error_type = ErrorHandler.classify_status(response.status_code)["type"]
            logger.warning("%s %s returned %s", method, path, response.status_code)
            raise ZeroAPIError(
                f"Zero API returned {response.status_code} for {method} {path}",
                status_code=response.status_code,
                error_type=error_type,
                detail=_backend_message(response),
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _entity_path(entity: str, record_id: Optional[str] = None) -> str:
        if entity not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity type '{entity}'. Expected one of: {', '.join(ENTITY_TYPES)}")
        return f"/api/{entity}/{record_id}" if record_id else f"/api/{entity}"

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def list_records(self, entity: str, query: Optional[ListQuery] = None) -> ListPage:
        params = query.to_params() if query else None
        body = await self._request("GET", self._entity_path(entity), params=params)
        if isinstance(body, list):
            return ListPage(data=body)
        return ListPage.model_validate(body or {})

    async def get_record(
        self,
        entity: str,
        record_id: str,
        fields: Optional[str] = None,
        workspace_id: Optional[str] = None,
    ) -> Record:
        params: Dict[str, str] = {}
        if workspace_id:
            params["workspaceId"] = workspace_id
        if fields:
            params["fields"] = fields
        body = await self._request("GET", self._entity_path(entity, record_id), params=params or None)
        return Record.model_validate(_unwrap(body) or {})

    async def list_workspaces(self) -> List[Record]:
        body = await self._request("GET", "/api/workspaces")
        if isinstance(body, list):
            return [Record.model_validate(item) for item in body]
        return ListPage.model_validate(body or {}).data

    # ── Writes ────────────────────────────────────────────────────────────────

    async def create_record(self, entity: str, workspace_id: str, values: Dict[str, Any]) -> Record:
        payload = {**values, "workspaceId": workspace_id}
        body = await self._request("POST", self._entity_path(entity), json=payload)
        return Record.model_validate(_unwrap(body) or {})

    async def update_record(
        self, entity: str, record_id: str, workspace_id: str, values: Dict[str, Any]
    ) -> Record:
        payload = {**values, "workspaceId": workspace_id}
        body = await self._request("PATCH", self._entity_path(entity, record_id), json=payload)
        return Record.model_validate(_unwrap(body) or {})

    async def delete_record(self, entity: str, record_id: str, archive: bool = True) -> None:
        params = {"archive": "true"} if archive else None
        await self._request("DELETE", self._entity_path(entity, record_id), params=params)
