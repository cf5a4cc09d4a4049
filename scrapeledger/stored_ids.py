import asyncio
from datetime import datetime
import logging

from scrapeledger.config import Settings
from scrapeledger.state_store import KeyValueStore
from scrapeledger.time_window import compute_threshold


logger = logging.getLogger(__name__)

STORED_IDS_KEY = "stored-ids"


class StoredProductIds:
    """Product ids written by earlier runs.

    A product seen before only needs its recent reviews; a new one is scraped
    over the long window.
    """

    def __init__(self, store: KeyValueStore, key: str = STORED_IDS_KEY) -> None:
        self.store = store
        self.key = key
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._ids)

    async def load(self) -> None:
        stored = await asyncio.to_thread(self.store.get, self.key)
        self._ids = {str(product_id) for product_id in stored or []}
        logger.info("stored product ids loaded", extra={"key": self.key, "count": len(self._ids)})

    async def save(self) -> None:
        await asyncio.to_thread(self.store.set, self.key, sorted(self._ids))

    def contains(self, product_id: str | int) -> bool:
        return str(product_id) in self._ids

    def add(self, product_id: str | int) -> None:
        self._ids.add(str(product_id))

    def review_threshold(self, product_id: str | int, settings: Settings, *, now: datetime | None = None) -> int:
        if self.contains(product_id):
            return compute_threshold(settings.reviews_days_back, settings.reviews_months_back, now=now)
        return compute_threshold(months_back=settings.new_product_months_back, now=now)
