import asyncio
import copy
import logging

from scrapeledger.schemas import Fragment, PartialRecord
from scrapeledger.state_store import KeyValueStore


logger = logging.getLogger(__name__)

CACHE_KEY = "CACHE"


class Accumulator:
    """Partial product records keyed by product id.

    Details are merged field by field with the newest value winning. Reviews
    and questions are only ever appended, so submitting the same fragment
    twice duplicates its reviews. Callers serialize access.
    """

    def __init__(self, store: KeyValueStore, key: str = CACHE_KEY) -> None:
        self.store = store
        self.key = key
        self._records: dict[str, PartialRecord] = {}

    def __contains__(self, record_id: object) -> bool:
        return str(record_id) in self._records

    def __len__(self) -> int:
        return len(self._records)

    def ids(self) -> list[str]:
        return list(self._records)

    def merge(self, record_id: str | int, fragment: Fragment | None = None) -> None:
        if fragment is None:
            return

        record = self._records.setdefault(str(record_id), PartialRecord())
        record.reviews.extend(fragment.reviews)
        record.questions_and_answers.extend(fragment.questions_and_answers)
        record.details = {**record.details, **fragment.details}

    def get(self, record_id: str | int) -> PartialRecord | None:
        return self._records.get(str(record_id))

    def delete(self, record_id: str | int) -> None:
        self._records.pop(str(record_id), None)

    def to_snapshot(self) -> dict[str, dict[str, object]]:
        return {record_id: copy.deepcopy(record.to_dict()) for record_id, record in self._records.items()}

    def load_snapshot(self, blob: dict[str, dict[str, object]] | None) -> None:
        self._records = {
            str(record_id): PartialRecord.from_dict(copy.deepcopy(payload)) for record_id, payload in (blob or {}).items()
        }

    async def load(self) -> None:
        blob = await asyncio.to_thread(self.store.get, self.key)
        self.load_snapshot(blob)
        logger.info("cache loaded", extra={"key": self.key, "records": len(self._records)})

    async def save(self) -> None:
        await asyncio.to_thread(self.store.set, self.key, self.to_snapshot())
        logger.debug("cache persisted", extra={"key": self.key, "records": len(self._records)})

    async def clear_all(self) -> None:
        self._records = {}
        await asyncio.to_thread(self.store.set, self.key, {})
        logger.debug("cache deleted", extra={"key": self.key})
