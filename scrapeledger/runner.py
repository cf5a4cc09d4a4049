import asyncio
import copy
import logging

from sqlalchemy.orm import Session, sessionmaker

from scrapeledger.accumulator import Accumulator
from scrapeledger.checkpoint import Checkpointer
from scrapeledger.config import Settings
from scrapeledger.counters import CounterBoard
from scrapeledger.notifications import notify_run_finished
from scrapeledger.schemas import Fragment, PartialRecord, RunEnvironment
from scrapeledger.state_store import DatasetClient, KeyValueStore, SqlDataset, SqlKeyValueStore
from scrapeledger.stored_ids import StoredProductIds
from scrapeledger.time_window import keep_recent_reviews
from scrapeledger.validation import validate_output


logger = logging.getLogger(__name__)


class EmptyDatasetError(RuntimeError):
    pass


def ensure_dataset_has_items(dataset: DatasetClient) -> int:
    count = dataset.count_items()
    if count == 0:
        raise EmptyDatasetError("Run failed. The dataset is empty.")
    return count


class ScrapeRun:
    """State for one logical run, shared by every worker of that run."""

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        dataset: DatasetClient,
        stored_ids_store: KeyValueStore,
    ) -> None:
        self.settings = settings
        self.store = store
        self.dataset = dataset
        self.accumulator = Accumulator(store)
        self.counters = CounterBoard(store, dataset)
        self.checkpointer = Checkpointer(self.accumulator, self.counters, store)
        self.stored_ids = StoredProductIds(stored_ids_store)

    @classmethod
    def from_settings(cls, settings: Settings, session_factory: sessionmaker[Session]) -> "ScrapeRun":
        return cls(
            settings,
            store=SqlKeyValueStore(session_factory, settings.store_name),
            dataset=SqlDataset(session_factory, settings.dataset_name),
            stored_ids_store=SqlKeyValueStore(session_factory, settings.stored_ids_store_name),
        )

    async def open(self, custom_stats: dict[str, object] | None = None) -> bool:
        """Load persisted state. Returns True when resuming an earlier attempt of this run."""
        await self.accumulator.load()
        resumed = await self.counters.initialize({"datasetName": self.settings.dataset_name, **(custom_stats or {})})
        await self.stored_ids.load()
        logger.info(
            "run opened",
            extra={"resumed": resumed, "pending_products": len(self.accumulator), "stored_ids": len(self.stored_ids)},
        )
        return resumed

    def review_threshold(self, product_id: str | int) -> int:
        return self.stored_ids.review_threshold(product_id, self.settings)

    def add_fragment(self, product_id: str | int, fragment: Fragment, threshold: int | None = None) -> int:
        """Merge a fragment, dropping reviews older than ``threshold``. Returns the reviews kept."""
        reviews = fragment.reviews
        if threshold is not None:
            reviews = keep_recent_reviews(fragment.reviews, threshold)
        self.accumulator.merge(
            product_id,
            Fragment(details=fragment.details, reviews=reviews, questions_and_answers=fragment.questions_and_answers),
        )
        return len(reviews)

    def build_record(self, product_id: str | int) -> dict[str, object] | None:
        partial = self.accumulator.get(product_id)
        if partial is None:
            return None
        return {
            "retailerName": self.settings.retailer_name,
            "market": self.settings.market,
            "site": self.settings.site,
            **partial.to_dict(),
        }

    async def complete_product(
        self,
        product_id: str | int,
        *,
        category: str | None = None,
        subcategory: str | None = None,
    ) -> bool:
        record = copy.deepcopy(self.build_record(product_id))
        if record is None:
            logger.warning("no cached data for product", extra={"product_id": str(product_id)})
            return False

        if not validate_output(record):
            self.counters.add_invalid_output()
            self.accumulator.delete(product_id)
            logger.error("product rejected by output validation", extra={"product_id": str(product_id)})
            return False

        # Detach before pushing; fragments merged during the push start a new partial record.
        self.accumulator.delete(product_id)
        try:
            await asyncio.to_thread(self.dataset.push_item, record)
        except Exception:
            # Put the record back ahead of anything merged while the push was in flight.
            arrived = self.accumulator.get(product_id)
            self.accumulator.delete(product_id)
            for pending in (PartialRecord.from_dict(record), arrived):
                if pending is not None:
                    self.accumulator.merge(
                        product_id,
                        Fragment(pending.details, pending.reviews, pending.questions_and_answers),
                    )
            raise

        self.counters.add_products_done()
        if category and subcategory:
            self.counters.add_products_done_per_subcategory(category, subcategory)
        self.counters.add_reviews(len(record["reviews"]))
        self.counters.add_question_and_answers(len(record["questionsAndAnswers"]))
        self.stored_ids.add(product_id)
        return True

    def abandon_product(self, product_id: str | int) -> None:
        self.accumulator.delete(product_id)
        logger.info("product abandoned", extra={"product_id": str(product_id)})

    async def checkpoint(self) -> None:
        await self.checkpointer.persist_all()

    async def finish(self, categories: list[str]) -> int:
        """Persist everything, fail on an empty dataset, then send the completion notice."""
        await self.checkpointer.persist_all()
        await self.stored_ids.save()

        count = await asyncio.to_thread(ensure_dataset_has_items, self.dataset)
        info = await asyncio.to_thread(self.dataset.get_info)
        env = RunEnvironment(run_id=self.settings.run_id, dataset_id=info.id)
        await asyncio.to_thread(notify_run_finished, self.settings, self.settings.retailer_name, env, categories)
        logger.info("run finished", extra={"items": count, "dataset_id": info.id})
        return count
