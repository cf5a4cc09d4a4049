import json
import logging
import threading
from typing import Protocol
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from scrapeledger.db_models import Dataset, DatasetItem, KeyValueEntry, utc_now
from scrapeledger.schemas import DatasetInfo


logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> object | None: ...

    def set(self, key: str, value: object) -> None: ...


class DatasetClient(Protocol):
    def get_info(self) -> DatasetInfo: ...

    def push_item(self, item: dict[str, object]) -> None: ...

    def count_items(self) -> int: ...


def get_entry(db: Session, *, store_name: str, key: str) -> KeyValueEntry | None:
    stmt = select(KeyValueEntry).where(KeyValueEntry.store_name == store_name, KeyValueEntry.key == key)
    return db.execute(stmt).scalar_one_or_none()


def put_entry(db: Session, *, store_name: str, key: str, value: str) -> None:
    entry = get_entry(db, store_name=store_name, key=key)
    if entry is None:
        db.add(KeyValueEntry(store_name=store_name, key=key, value=value))
    else:
        entry.value = value
        entry.updated_at = utc_now()
    db.commit()


def get_dataset_by_name(db: Session, name: str) -> Dataset | None:
    stmt = select(Dataset).where(Dataset.name == name)
    return db.execute(stmt).scalar_one_or_none()


def create_or_get_dataset(db: Session, name: str) -> Dataset:
    existing = get_dataset_by_name(db, name)
    if existing:
        return existing

    dataset = Dataset(id=uuid.uuid4().hex, name=name)
    db.add(dataset)
    try:
        db.commit()
    except IntegrityError:
        # Unique name keeps one dataset per run name.
        db.rollback()
        existing = get_dataset_by_name(db, name)
        if existing:
            return existing
        raise

    db.refresh(dataset)
    return dataset


class SqlKeyValueStore:
    """JSON values keyed by name, scoped to one named store."""

    def __init__(self, session_factory: sessionmaker[Session], store_name: str = "default") -> None:
        self.session_factory = session_factory
        self.store_name = store_name
        # SQLite allows one writer at a time.
        self._write_lock = threading.Lock()

    def get(self, key: str) -> object | None:
        with self.session_factory() as db:
            entry = get_entry(db, store_name=self.store_name, key=key)
            if entry is None:
                return None
            return json.loads(entry.value)

    def set(self, key: str, value: object) -> None:
        payload = json.dumps(value, sort_keys=True)
        with self._write_lock, self.session_factory() as db:
            put_entry(db, store_name=self.store_name, key=key, value=payload)
        logger.debug("key value entry saved", extra={"store_name": self.store_name, "key": key})


class SqlDataset:
    def __init__(self, session_factory: sessionmaker[Session], name: str = "default") -> None:
        self.session_factory = session_factory
        self.name = name

    def get_info(self) -> DatasetInfo:
        with self.session_factory() as db:
            dataset = create_or_get_dataset(db, self.name)
            return DatasetInfo(id=dataset.id, created_at=dataset.created_at)

    def push_item(self, item: dict[str, object]) -> None:
        with self.session_factory() as db:
            dataset = create_or_get_dataset(db, self.name)
            db.add(DatasetItem(dataset_id=dataset.id, payload=json.dumps(item, sort_keys=True)))
            db.commit()

    def count_items(self) -> int:
        with self.session_factory() as db:
            dataset = get_dataset_by_name(db, self.name)
            if dataset is None:
                return 0
            stmt = select(func.count(DatasetItem.id)).where(DatasetItem.dataset_id == dataset.id)
            return db.execute(stmt).scalar_one()

    def list_items(self) -> list[dict[str, object]]:
        with self.session_factory() as db:
            dataset = get_dataset_by_name(db, self.name)
            if dataset is None:
                return []
            stmt = select(DatasetItem.payload).where(DatasetItem.dataset_id == dataset.id).order_by(DatasetItem.id)
            return [json.loads(payload) for payload in db.execute(stmt).scalars().all()]
