import asyncio
from dataclasses import dataclass, field
from datetime import UTC
from enum import StrEnum
import logging

import yaml

from scrapeledger.schemas import StatsSummary
from scrapeledger.state_store import DatasetClient, KeyValueStore


logger = logging.getLogger(__name__)

STATS_KEY = "STATS"


class Counter(StrEnum):
    OK = "ok"
    FAILED = "failed"
    DENIED = "denied"
    SKIPPED = "skipped"
    PRODUCTS = "products"
    PRODUCTS_DONE = "productsDone"
    INVALID_OUTPUT = "invalidOutput"
    EMPTY_LIST = "emptyList"
    DUPLICITIES = "duplicities"
    REVIEWS = "reviews"
    QUESTION_AND_ANSWERS = "questionAndAnswers"


class Breakdown(StrEnum):
    REQUESTS_PER_LABEL = "requestsPerLabel"
    PRODUCTS_DONE_PER_SUBCATEGORY = "productsDonePerSubcategory"


METADATA_KEYS = ("datasetDate", "defaultDatasetId", "datasetName")
SCALAR_NAMES = frozenset(counter.value for counter in Counter)
BREAKDOWN_NAMES = frozenset(table.value for table in Breakdown)


@dataclass
class RunCounters:
    scalars: dict[Counter, int] = field(default_factory=lambda: {counter: 0 for counter in Counter})
    breakdowns: dict[Breakdown, dict[str, int]] = field(default_factory=lambda: {table: {} for table in Breakdown})
    metadata: dict[str, object] = field(default_factory=lambda: {key: None for key in METADATA_KEYS})
    custom: dict[str, object] = field(default_factory=dict)

    def to_snapshot(self) -> dict[str, object]:
        snapshot: dict[str, object] = {counter.value: value for counter, value in self.scalars.items()}
        snapshot.update({table.value: dict(values) for table, values in self.breakdowns.items()})
        snapshot.update(self.metadata)
        snapshot.update(self.custom)
        return snapshot

    @classmethod
    def from_snapshot(cls, blob: dict[str, object]) -> "RunCounters":
        counters = cls()
        for key, value in blob.items():
            if key in SCALAR_NAMES:
                counters.scalars[Counter(key)] = value
            elif key in BREAKDOWN_NAMES:
                counters.breakdowns[Breakdown(key)] = dict(value or {})
            elif key in METADATA_KEYS:
                counters.metadata[key] = value
            else:
                counters.custom[key] = value
        return counters


def block_ratio(ok: int, denied: int) -> float:
    total = ok + denied
    if total <= 0:
        return 0.0
    return denied / total * 100


def render_report(summary: StatsSummary) -> str:
    blocks = [summary.scalars]
    blocks.extend({name: values} for name, values in summary.breakdowns.items())
    rendered = "\n".join(yaml.safe_dump(block, sort_keys=False, default_flow_style=False) for block in blocks)
    body = rendered.rstrip("\n").replace("\n", "\n  ")
    return f"[MONITOR]\n\n  {body}\n[BLOCK RATIO] {summary.block_ratio:.2f}%"


class CounterBoard:
    """Run-wide counters, persisted as one flat stats record.

    Counters only ever grow; ``set_custom`` is the one way to overwrite a
    value. Callers serialize access.
    """

    def __init__(self, store: KeyValueStore, dataset: DatasetClient, key: str = STATS_KEY) -> None:
        self.store = store
        self.dataset = dataset
        self.key = key
        self.counters = RunCounters()

    async def initialize(self, custom_initial: dict[str, object] | None = None) -> bool:
        """Restore persisted stats, or start fresh. Returns True when resumed."""
        stored = await asyncio.to_thread(self.store.get, self.key)
        if stored:
            self.counters = RunCounters.from_snapshot(stored)
            logger.info("stats restored", extra={"key": self.key})
            return True

        info = await asyncio.to_thread(self.dataset.get_info)
        created_at = info.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        dataset_attributes = {
            "datasetDate": created_at.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "defaultDatasetId": info.id,
        }
        self.counters = RunCounters.from_snapshot({**RunCounters().to_snapshot(), **(custom_initial or {}), **dataset_attributes})
        logger.info("stats initialized", extra={"key": self.key, "dataset_id": info.id})
        return False

    def to_snapshot(self) -> dict[str, object]:
        return self.counters.to_snapshot()

    def load_snapshot(self, blob: dict[str, object] | None) -> None:
        self.counters = RunCounters.from_snapshot(blob or {})

    def reset(self) -> None:
        metadata = dict(self.counters.metadata)
        self.counters = RunCounters(metadata=metadata)

    def increment(self, counter: Counter | str, amount: int = 1) -> None:
        self.counters.scalars[Counter(counter)] += amount

    def get(self, counter: Counter | str) -> int:
        return self.counters.scalars[Counter(counter)]

    def bump_keyed(self, table: Breakdown | str, key: str, amount: int = 1) -> None:
        values = self.counters.breakdowns[Breakdown(table)]
        values[key] = values.get(key, 0) + amount

    def get_keyed(self, table: Breakdown | str, key: str) -> int:
        return self.counters.breakdowns[Breakdown(table)].get(key, 0)

    def get_custom(self, name: str) -> object:
        if name in SCALAR_NAMES:
            return self.counters.scalars[Counter(name)]
        if name in METADATA_KEYS:
            return self.counters.metadata[name]
        return self.counters.custom.get(name)

    def set_custom(self, name: str, value: object) -> None:
        if name in SCALAR_NAMES:
            self.counters.scalars[Counter(name)] = value
        elif name in METADATA_KEYS:
            self.counters.metadata[name] = value
        else:
            self.counters.custom[name] = value

    # denied requests
    def add_denied(self, amount: int = 1) -> None:
        self.increment(Counter.DENIED, amount)

    # failed requests
    def add_failed(self, amount: int = 1) -> None:
        self.increment(Counter.FAILED, amount)

    def add_skipped(self, amount: int = 1) -> None:
        self.increment(Counter.SKIPPED, amount)

    def add_ok(self, amount: int = 1) -> None:
        self.increment(Counter.OK, amount)

    def add_products(self, amount: int = 1) -> None:
        self.increment(Counter.PRODUCTS, amount)

    def add_products_done(self, amount: int = 1) -> None:
        self.increment(Counter.PRODUCTS_DONE, amount)

    def add_invalid_output(self, amount: int = 1) -> None:
        self.increment(Counter.INVALID_OUTPUT, amount)

    def add_empty_list(self, amount: int = 1) -> None:
        self.increment(Counter.EMPTY_LIST, amount)

    def add_duplicities(self, amount: int = 1) -> None:
        self.increment(Counter.DUPLICITIES, amount)

    def add_reviews(self, amount: int = 1) -> None:
        self.increment(Counter.REVIEWS, amount)

    def add_question_and_answers(self, amount: int = 1) -> None:
        self.increment(Counter.QUESTION_AND_ANSWERS, amount)

    def add_requests_per_label(self, label: str, amount: int = 1) -> None:
        self.bump_keyed(Breakdown.REQUESTS_PER_LABEL, label, amount)

    def get_requests_per_label(self, label: str) -> int:
        return self.get_keyed(Breakdown.REQUESTS_PER_LABEL, label)

    def add_products_done_per_subcategory(self, category: str, subcategory: str, amount: int = 1) -> None:
        self.bump_keyed(Breakdown.PRODUCTS_DONE_PER_SUBCATEGORY, f"{category} > {subcategory}", amount)

    def get_products_done_per_subcategory(self, category: str, subcategory: str) -> int:
        return self.get_keyed(Breakdown.PRODUCTS_DONE_PER_SUBCATEGORY, f"{category} > {subcategory}")

    def summarize(self) -> StatsSummary:
        scalars: dict[str, object] = {counter.value: value for counter, value in self.counters.scalars.items()}
        scalars.update({key: value for key, value in self.counters.metadata.items() if value is not None})
        scalars.update(self.counters.custom)
        breakdowns = {table.value: dict(values) for table, values in self.counters.breakdowns.items() if values}
        return StatsSummary(
            scalars=scalars,
            breakdowns=breakdowns,
            block_ratio=block_ratio(self.get(Counter.OK), self.get(Counter.DENIED)),
        )

    def details_snapshot(self) -> dict[str, object]:
        return {
            "itemsCount": self.get(Counter.PRODUCTS_DONE),
            "reviewsCount": self.get(Counter.REVIEWS),
            "questionsAndAnswersCount": self.get(Counter.QUESTION_AND_ANSWERS),
            "datasetName": self.counters.metadata["datasetName"],
            "datasetDate": self.counters.metadata["datasetDate"],
            "defaultDatasetId": self.counters.metadata["defaultDatasetId"],
        }
