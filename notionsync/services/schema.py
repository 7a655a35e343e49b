"""
Destination schema introspection with a process-lifetime cache.

The cache is keyed by destination id only and never expires.  A stale entry
can at worst leave new properties unmapped or make a write fail with
WriteRejected; it is refreshed only through invalidate().
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from notionsync.errors import DestinationUnreachable
from notionsync.services.notion_client import NotionClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DestinationSchema:
    destination_id: str
    # property name -> Notion property type ("title", "rich_text", ...)
    properties: Mapping[str, str] = field(default_factory=dict)
    title: Optional[str] = None

    @property
    def title_property(self) -> Optional[str]:
        titles = sorted(n for n, t in self.properties.items() if t == "title")
        return titles[0] if titles else None


def schema_from_database(destination_id: str, database: Dict) -> DestinationSchema:
    raw = database.get("properties")
    if not isinstance(raw, dict):
        raise DestinationUnreachable(
            destination_id, "Destination returned no property schema"
        )
    properties = {
        name: prop.get("type", "")
        for name, prop in raw.items()
        if isinstance(prop, dict)
    }
    title = None
    title_parts = database.get("title")
    if isinstance(title_parts, list) and title_parts:
        title = title_parts[0].get("plain_text")
    return DestinationSchema(destination_id=destination_id, properties=properties, title=title)


class SchemaIntrospector:
    def __init__(self, client: NotionClient) -> None:
        self._client = client
        self._cache: Dict[str, DestinationSchema] = {}

    async def get_schema(self, destination_id: str, credential_token: str) -> DestinationSchema:
        cached = self._cache.get(destination_id)
        if cached is not None:
            return cached

        database = await self._client.retrieve_database(credential_token, destination_id)
        schema = schema_from_database(destination_id, database)
        if schema.title_property is None:
            logger.warning("Destination %s has no title property", destination_id)

        # Concurrent first fetches may both land here; either result is fine
        self._cache[destination_id] = schema
        logger.info(
            "Cached schema for destination=%s (%d properties)",
            destination_id, len(schema.properties),
        )
        return schema

    def invalidate(self, destination_id: str) -> None:
        if self._cache.pop(destination_id, None) is not None:
            logger.info("Schema cache cleared for destination=%s", destination_id)
