"""
client/lists.py — Medical record list view
UBS Manager v1.0
"""

from typing import Optional

from client.api import ApiClient
from client.cache import QueryCache, record_key, records_key
from core.logging_config import get_logger

logger = get_logger("client.lists")


class MedicalRecordList:
    """Cached listing, filtered by unit and/or disease; delete refreshes it."""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache
        self.ubs_id: Optional[int] = None
        self.disease_id: Optional[int] = None
        self.items: list[dict] = []

    async def load(self, ubs_id: Optional[int] = None, disease_id: Optional[int] = None) -> list[dict]:
        self.ubs_id, self.disease_id = ubs_id, disease_id
        self.items = await self.cache.fetch(
            records_key(ubs_id, disease_id),
            lambda: self.api.list_medical_records(ubs_id=ubs_id, disease_id=disease_id),
        )
        return self.items

    async def refresh(self) -> list[dict]:
        return await self.load(self.ubs_id, self.disease_id)

    async def delete(self, record_id: int) -> list[dict]:
        await self.api.delete_medical_record(record_id)
        self.cache.invalidate("/api/medical-records")
        self.cache.invalidate(*record_key(record_id))
        logger.info(f"🗑️ Prontuário {record_id} removido da lista")
        return await self.refresh()
