from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from florify.core.config import settings
from florify.core.db import get_db
from florify.services.catalog_store import CatalogStore, SqlCatalogStore
from florify.services.storage import LocalObjectStore, ObjectStore


async def require_internal_admin(x_internal_admin_key: str | None = Header(default=None)) -> None:
    if not x_internal_admin_key or x_internal_admin_key != settings.internal_admin_key:
        raise HTTPException(status_code=403, detail="Internal admin key required")


async def current_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    return (x_user_id or "").strip() or None


async def get_catalog_store(db: AsyncSession = Depends(get_db)) -> CatalogStore:
    return SqlCatalogStore(db)


def get_object_store() -> ObjectStore:
    return LocalObjectStore(settings.import_storage_dir)
