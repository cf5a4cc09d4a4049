from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from scrapeledger.config import Settings
from scrapeledger.database import build_session_factory
from scrapeledger.runner import ScrapeRun
from scrapeledger.state_store import SqlDataset, SqlKeyValueStore


class MemoryStore:
    def __init__(self, fail_keys: set[str] | None = None) -> None:
        self.values: dict[str, object] = {}
        self.fail_keys = fail_keys or set()
        self.writes: list[str] = []

    def get(self, key: str) -> object | None:
        return self.values.get(key)

    def set(self, key: str, value: object) -> None:
        self.writes.append(key)
        if key in self.fail_keys:
            raise OSError(f"write refused for {key}")
        self.values[key] = value


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="scrapeledger",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        store_name="default",
        stored_ids_store_name="stored-product-ids",
        dataset_name="reviews-2026-10-19",
        retailer_name="Acme",
        market="US",
        site="acme.example",
        reviews_days_back=7,
        reviews_months_back=None,
        new_product_months_back=24,
        persist_interval_seconds=60,
        max_persist_retries=1,
        retry_backoff_seconds=0,
        is_at_home=False,
        run_id="run-1",
        notify_webhook_url="",
        notify_timeout_seconds=5,
    )


@pytest.fixture()
def home_settings(test_settings: Settings) -> Settings:
    return replace(test_settings, is_at_home=True, notify_webhook_url="https://hooks.example/notify")


@pytest.fixture()
def session_factory(test_settings: Settings) -> sessionmaker[Session]:
    return build_session_factory(test_settings.database_url)


@pytest.fixture()
def kv_store(session_factory: sessionmaker[Session], test_settings: Settings) -> SqlKeyValueStore:
    return SqlKeyValueStore(session_factory, test_settings.store_name)


@pytest.fixture()
def dataset(session_factory: sessionmaker[Session], test_settings: Settings) -> SqlDataset:
    return SqlDataset(session_factory, test_settings.dataset_name)


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def scrape_run(test_settings: Settings, session_factory: sessionmaker[Session]) -> ScrapeRun:
    return ScrapeRun.from_settings(test_settings, session_factory)


def build_review(**overrides: object) -> dict[str, object]:
    review = {
        "internalReviewId": "r-1",
        "retailerReviewId": "1001",
        "reviewDate": "2026-10-18",
        "reviewDateISO": "2026-10-18T10:00:00",
        "rating": 4,
        "reviewTitle": "Solid",
        "reviewText": "Does what it says.",
        "parentOrChild": "parent",
        "reviewUrl": "https://acme.example/p/1#r-1",
        "reviewType": "organic",
        "verifiedPurchase": True,
        "helpfulReviewCount": 0,
        "reviewCustomerImages": [],
    }
    review.update(overrides)
    return review


def build_answer(**overrides: object) -> dict[str, object]:
    answer = {"answerId": "a-1", "answerDate": "2026-10-17", "answer": "Yes."}
    answer.update(overrides)
    return answer


def build_question(**overrides: object) -> dict[str, object]:
    question = {
        "questionId": "q-1",
        "questionUrl": "https://acme.example/p/1#q-1",
        "questionDate": "2026-10-16",
        "questionDateISO": "2026-10-16T09:00:00",
        "question": "Is it waterproof?",
        "answers": [build_answer()],
    }
    question.update(overrides)
    return question


def build_details(**overrides: object) -> dict[str, object]:
    details = {
        "productName": "Trail Boot",
        "category": "Shoes",
        "subcategory": "Boots",
        "brand": "Acme",
        "retailerProductCode": "TB-1",
        "upc": "000111222333",
        "manufacturer": "Acme Footwear",
        "productUrl": "https://acme.example/p/1",
        "numberOfReviews": 1,
        "rating": 4.0,
        "aboutThisItem": "",
        "additionalProductDescription": "",
        "ingredients": "",
        "productImageUrl": "https://acme.example/p/1.jpg",
        "dateFirstAvailable": "2025-01-01",
        "dateAddedToCatalog": "2025-01-02",
    }
    details.update(overrides)
    return details


def build_record(**overrides: object) -> dict[str, object]:
    record = {
        "retailerName": "Acme",
        "market": "US",
        "site": "acme.example",
        "details": build_details(),
        "reviews": [build_review()],
        "questionsAndAnswers": [build_question()],
    }
    record.update(overrides)
    return record


@pytest.fixture()
def make_review() -> Callable[..., dict[str, object]]:
    return build_review


@pytest.fixture()
def make_question() -> Callable[..., dict[str, object]]:
    return build_question


@pytest.fixture()
def make_details() -> Callable[..., dict[str, object]]:
    return build_details


@pytest.fixture()
def make_record() -> Callable[..., dict[str, object]]:
    return build_record


@pytest.fixture()
def make_store() -> Callable[..., MemoryStore]:
    return MemoryStore
