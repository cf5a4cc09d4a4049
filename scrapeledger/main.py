import argparse
import asyncio
import logging

from scrapeledger.accumulator import Accumulator
from scrapeledger.config import get_settings
from scrapeledger.counters import STATS_KEY, CounterBoard, render_report
from scrapeledger.database import build_session_factory
from scrapeledger.runner import EmptyDatasetError, ensure_dataset_has_items
from scrapeledger.state_store import SqlDataset, SqlKeyValueStore
from scrapeledger.time_window import compute_threshold, threshold_date_string


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect and maintain scrape run state")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("report", help="print the progress report from persisted stats")

    threshold_parser = subparsers.add_parser("threshold", help="print the review acceptance threshold")
    threshold_parser.add_argument("--days-back", type=int, default=None, help="days before today")
    threshold_parser.add_argument("--months-back", type=int, default=None, help="months before today, wins over days")

    subparsers.add_parser("reset-cache", help="drop all cached partial products")
    subparsers.add_parser("check-dataset", help="fail when the output dataset is empty")

    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.command == "threshold":
        days_back = settings.reviews_days_back if args.days_back is None else args.days_back
        months_back = settings.reviews_months_back if args.months_back is None else args.months_back
        print(
            "threshold={seconds} date={date}".format(
                seconds=compute_threshold(days_back, months_back),
                date=threshold_date_string(days_back, months_back),
            )
        )
        return

    session_factory = build_session_factory(settings.database_url)
    store = SqlKeyValueStore(session_factory, settings.store_name)
    dataset = SqlDataset(session_factory, settings.dataset_name)

    if args.command == "report":
        stored = store.get(STATS_KEY)
        if not stored:
            print("no stats persisted")
            raise SystemExit(1)
        counters = CounterBoard(store, dataset)
        counters.load_snapshot(stored)
        print(render_report(counters.summarize()))
        return

    if args.command == "reset-cache":
        asyncio.run(Accumulator(store).clear_all())
        print("cache cleared store={store}".format(store=settings.store_name))
        return

    try:
        count = ensure_dataset_has_items(dataset)
    except EmptyDatasetError as exc:
        print(f"status=failed error={exc}")
        raise SystemExit(1)
    print(f"status=ok items={count}")


if __name__ == "__main__":
    main()
