"""
Thin Notion REST API client (no SDK dependency).

One instance wraps a shared httpx.AsyncClient; the workspace credential is
passed per call so every tenant can use its own token over the same pool.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from notionsync.config import Settings
from notionsync.errors import DestinationUnreachable, WriteRejected

logger = logging.getLogger(__name__)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:300] or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text[:300]


class NotionClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        api_base: str = "https://api.notion.com/v1",
        api_version: str = "2022-06-28",
    ) -> None:
        self._http = http
        self._base = api_base.rstrip("/")
        self._version = api_version

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, settings: Settings) -> "NotionClient":
        return cls(http, settings.notion_api_base, settings.notion_api_version)

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Notion-Version": self._version,
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        destination_id: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            return await self._http.request(
                method, f"{self._base}{path}", headers=self._headers(token), json=json
            )
        except httpx.HTTPError as exc:
            logger.error(
                "Notion %s %s failed for destination=%s: %s",
                method, path, destination_id, exc,
            )
            raise DestinationUnreachable(destination_id, f"Notion request failed: {exc}") from exc

    async def retrieve_database(self, token: str, database_id: str) -> Dict[str, Any]:
        """GET /databases/{id}.  Any non-success means the schema is unavailable."""
        resp = await self._request("GET", f"/databases/{database_id}", token, database_id)
        if resp.is_success:
            return resp.json()

        message = _error_message(resp)
        logger.error(
            "Notion schema fetch failed destination=%s status=%d body=%s",
            database_id, resp.status_code, message[:300],
        )
        if resp.status_code == 404:
            message = f"Database {database_id} not found or not shared with the integration"
        raise DestinationUnreachable(database_id, message)

    async def create_page(
        self, token: str, database_id: str, properties: Dict[str, Any]
    ) -> Dict[str, Any]:
        """POST /pages with *database_id* as parent; returns the created page."""
        payload = {"parent": {"database_id": database_id}, "properties": properties}
        resp = await self._request("POST", "/pages", token, database_id, json=payload)
        if resp.is_success:
            return resp.json()

        message = _error_message(resp)
        logger.error(
            "Notion page create failed destination=%s status=%d body=%s",
            database_id, resp.status_code, message[:300],
        )
        # 429 is throttling, not a verdict on the payload
        if resp.status_code >= 500 or resp.status_code == 429:
            raise DestinationUnreachable(database_id, message)
        raise WriteRejected(database_id, message, status=resp.status_code)
