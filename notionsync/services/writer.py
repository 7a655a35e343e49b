"""
Record creation in a destination database.  No retries at this layer.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from notionsync.errors import DestinationUnreachable
from notionsync.services.notion_client import NotionClient

logger = logging.getLogger(__name__)


class PageWriter:
    def __init__(self, client: NotionClient) -> None:
        self._client = client

    async def write(
        self,
        destination_id: str,
        credential_token: str,
        mapping: Dict[str, Any],
    ) -> str:
        """Create one page; returns its id.

        Raises WriteRejected on a 4xx validation error and
        DestinationUnreachable on network / 5xx failures.
        """
        page = await self._client.create_page(credential_token, destination_id, mapping)
        record_id = page.get("id") if isinstance(page, dict) else None
        if not record_id:
            raise DestinationUnreachable(
                destination_id, "Destination accepted the write but returned no record id"
            )
        logger.info("Created record %s in destination=%s", record_id, destination_id)
        return record_id
