"""
Tenant lookup: which workspaces should receive a storefront's orders.

The sync engine only sees the TenantRepository protocol; SqlTenantRepository
is the SQLAlchemy-backed implementation used by the service.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol

from cryptography.fernet import InvalidToken
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notionsync.crypto import decrypt_token
from notionsync.errors import SyncError, TenantStoreUnavailable
from notionsync.models import ConnectedStore, Tenant

logger = logging.getLogger(__name__)

_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://")


@dataclass(frozen=True)
class TenantBinding:
    tenant_id: str
    storefront_id: str
    credential_token: str
    destination_id: str
    # Set when the stored credential cannot be used; the tenant then fails alone
    credential_error: Optional[str] = None


class TenantRepository(Protocol):
    async def find_bindings_by_storefront(self, storefront_id: str) -> List[TenantBinding]:
        ...

    async def update_destination_id(self, tenant_id: str, destination_id: str) -> bool:
        ...


def normalize_storefront_id(raw: str | None, suffix: str = ".myshopify.com") -> str:
    """``https://Shop-1.myshopify.com/`` -> ``shop-1``."""
    if not raw:
        return ""
    value = _SCHEME.sub("", raw.strip().lower()).rstrip("/")
    suffix = suffix.lower()
    if suffix and value.endswith(suffix):
        value = value[: -len(suffix)]
    return value


class SqlTenantRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_bindings_by_storefront(self, storefront_id: str) -> List[TenantBinding]:
        stmt = (
            select(Tenant.id, Tenant.workspace_token_encrypted, Tenant.destination_id)
            .join(ConnectedStore, ConnectedStore.tenant_id == Tenant.id)
            .where(
                ConnectedStore.storefront_id == storefront_id,
                ConnectedStore.is_active.is_(True),
                Tenant.destination_id.is_not(None),
            )
            .order_by(Tenant.created_at, Tenant.id)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()

        return [self._binding(row, storefront_id) for row in rows]

    @staticmethod
    def _binding(row, storefront_id: str) -> TenantBinding:
        try:
            token = decrypt_token(row.workspace_token_encrypted)
        except InvalidToken:
            logger.error("Workspace credential of tenant %s cannot be decrypted", row.id)
            return TenantBinding(
                tenant_id=row.id,
                storefront_id=storefront_id,
                credential_token="",
                destination_id=row.destination_id,
                credential_error="Stored workspace credential could not be decrypted",
            )
        return TenantBinding(
            tenant_id=row.id,
            storefront_id=storefront_id,
            credential_token=token,
            destination_id=row.destination_id,
        )

    async def update_destination_id(self, tenant_id: str, destination_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Tenant)
                .where(Tenant.id == tenant_id)
                .values(destination_id=destination_id)
            )
            await session.commit()
        updated = result.rowcount > 0
        if updated:
            logger.info("Tenant %s now syncs to destination=%s", tenant_id, destination_id)
        return updated


class TenantResolver:
    def __init__(self, repository: TenantRepository, suffix: str = ".myshopify.com") -> None:
        self.repository = repository
        self._suffix = suffix

    def normalize(self, storefront_id: str | None) -> str:
        return normalize_storefront_id(storefront_id, self._suffix)

    async def resolve(self, storefront_id: str | None) -> List[TenantBinding]:
        """Bindings for a storefront; an empty list when nobody has onboarded it."""
        normalized = self.normalize(storefront_id)
        if not normalized:
            return []
        try:
            bindings = await self.repository.find_bindings_by_storefront(normalized)
        except SyncError:
            raise
        except Exception as exc:
            logger.exception("Tenant lookup failed for storefront %s", normalized)
            raise TenantStoreUnavailable("Tenant store is unavailable") from exc
        logger.info("Storefront %s resolved to %d tenant(s)", normalized, len(bindings))
        return list(bindings)
