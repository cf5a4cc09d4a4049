import asyncio
from collections.abc import Awaitable
import logging

from scrapeledger.accumulator import Accumulator
from scrapeledger.counters import CounterBoard, render_report
from scrapeledger.state_store import KeyValueStore


logger = logging.getLogger(__name__)

DETAILS_KEY = "DETAILS"


class PersistenceError(RuntimeError):
    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = errors
        reasons = "; ".join(f"{type(error).__name__}: {error}" for error in errors)
        super().__init__(f"{len(errors)} persistence task(s) failed: {reasons}")


async def _attempt_all(*tasks: Awaitable[object]) -> None:
    results = await asyncio.gather(*tasks, return_exceptions=True)
    errors = [result for result in results if isinstance(result, BaseException)]
    if not errors:
        return
    # Cancellation of the caller wins over reporting.
    for error in errors:
        if isinstance(error, asyncio.CancelledError):
            raise error
    raise PersistenceError(errors) from errors[0]


class Checkpointer:
    """Writes accumulator and counter state to the durable store.

    The interval is owned by the caller; this class only performs one round of
    writes per call. A write is durable once the call returns.
    """

    def __init__(
        self,
        accumulator: Accumulator,
        counters: CounterBoard,
        store: KeyValueStore,
        details_key: str = DETAILS_KEY,
    ) -> None:
        self.accumulator = accumulator
        self.counters = counters
        self.store = store
        self.details_key = details_key

    async def persist_state(self) -> None:
        await _attempt_all(self.save_stats(), self.save_details(), self.print_stats())

    async def persist_accumulator(self) -> None:
        await self.accumulator.save()

    async def persist_all(self) -> None:
        await _attempt_all(self.persist_state(), self.persist_accumulator())

    async def save_stats(self) -> None:
        await asyncio.to_thread(self.store.set, self.counters.key, self.counters.to_snapshot())
        logger.info("key value store %s saved", self.counters.key)

    async def save_details(self) -> None:
        await asyncio.to_thread(self.store.set, self.details_key, self.counters.details_snapshot())
        logger.info("key value store %s saved", self.details_key)

    async def print_stats(self) -> None:
        self.log_progress()

    def log_progress(self) -> str:
        report = render_report(self.counters.summarize())
        logger.info(report)
        return report
