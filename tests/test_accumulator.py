import asyncio

from scrapeledger.accumulator import CACHE_KEY, Accumulator
from scrapeledger.schemas import Fragment


def test_details_are_last_write_wins_per_field(memory_store) -> None:
    accumulator = Accumulator(memory_store)

    accumulator.merge("p-1", Fragment(details={"productName": "Boot", "rating": 4.1}))
    accumulator.merge("p-1", Fragment(details={"rating": 4.3, "brand": "Acme"}))
    accumulator.merge("p-1", Fragment(details={"rating": 4.5}))

    record = accumulator.get("p-1")
    assert record.details == {"productName": "Boot", "rating": 4.5, "brand": "Acme"}


def test_reviews_and_questions_are_appended_in_arrival_order(memory_store, make_review, make_question) -> None:
    accumulator = Accumulator(memory_store)
    batches = [
        [make_review(internalReviewId="r-1"), make_review(internalReviewId="r-2")],
        [],
        [make_review(internalReviewId="r-3")],
    ]

    for batch in batches:
        accumulator.merge("p-1", Fragment(reviews=batch))
    accumulator.merge("p-1", Fragment(questions_and_answers=[make_question(questionId="q-1")]))
    accumulator.merge("p-1", Fragment(questions_and_answers=[make_question(questionId="q-2")]))

    record = accumulator.get("p-1")
    assert len(record.reviews) == sum(len(batch) for batch in batches)
    assert [review["internalReviewId"] for review in record.reviews] == ["r-1", "r-2", "r-3"]
    assert [question["questionId"] for question in record.questions_and_answers] == ["q-1", "q-2"]


def test_repeated_fragment_appends_reviews_again(memory_store, make_review) -> None:
    accumulator = Accumulator(memory_store)
    fragment = Fragment(details={"productName": "Boot"}, reviews=[make_review()])

    accumulator.merge("p-1", fragment)
    accumulator.merge("p-1", fragment)

    record = accumulator.get("p-1")
    assert record.details == {"productName": "Boot"}
    assert len(record.reviews) == 2


def test_empty_fragment_creates_skeleton_and_none_is_noop(memory_store) -> None:
    accumulator = Accumulator(memory_store)

    accumulator.merge("p-1")
    assert accumulator.get("p-1") is None
    assert len(accumulator) == 0

    accumulator.merge("p-1", Fragment())
    record = accumulator.get("p-1")
    assert record.details == {}
    assert record.reviews == []
    assert record.questions_and_answers == []


def test_integer_and_string_ids_address_the_same_record(memory_store) -> None:
    accumulator = Accumulator(memory_store)

    accumulator.merge(42, Fragment(details={"productName": "Boot"}))
    accumulator.merge("42", Fragment(details={"brand": "Acme"}))

    assert 42 in accumulator
    assert accumulator.get("42").details == {"productName": "Boot", "brand": "Acme"}
    assert accumulator.ids() == ["42"]


def test_delete_removes_record_and_ignores_unknown_ids(memory_store) -> None:
    accumulator = Accumulator(memory_store)
    accumulator.merge("p-1", Fragment(details={"productName": "Boot"}))

    accumulator.delete("p-1")
    accumulator.delete("missing")

    assert accumulator.get("p-1") is None
    assert len(accumulator) == 0


def test_snapshot_round_trip_preserves_empty_lists(memory_store, make_review, make_question) -> None:
    accumulator = Accumulator(memory_store)
    accumulator.merge("p-1", Fragment(details={"productName": "Boot"}))
    accumulator.merge("p-2", Fragment(reviews=[make_review()], questions_and_answers=[make_question()]))

    snapshot = accumulator.to_snapshot()
    restored = Accumulator(memory_store)
    restored.load_snapshot(snapshot)

    assert restored.to_snapshot() == snapshot
    assert snapshot["p-1"] == {"details": {"productName": "Boot"}, "reviews": [], "questionsAndAnswers": []}


def test_snapshot_is_detached_from_live_state(memory_store, make_review) -> None:
    accumulator = Accumulator(memory_store)
    accumulator.merge("p-1", Fragment(reviews=[make_review()]))

    snapshot = accumulator.to_snapshot()
    snapshot["p-1"]["reviews"].clear()

    assert len(accumulator.get("p-1").reviews) == 1


def test_load_snapshot_of_nothing_starts_empty(memory_store) -> None:
    accumulator = Accumulator(memory_store)
    accumulator.merge("p-1", Fragment(details={"productName": "Boot"}))

    accumulator.load_snapshot(None)
    assert len(accumulator) == 0

    accumulator.load_snapshot({})
    assert len(accumulator) == 0


def test_save_and_load_through_sql_store(kv_store, make_review) -> None:
    accumulator = Accumulator(kv_store)
    accumulator.merge(7, Fragment(details={"productName": "Boot"}, reviews=[make_review()]))
    asyncio.run(accumulator.save())

    resumed = Accumulator(kv_store)
    asyncio.run(resumed.load())

    assert resumed.to_snapshot() == accumulator.to_snapshot()
    assert resumed.get(7).details == {"productName": "Boot"}


def test_load_with_nothing_persisted_is_not_an_error(kv_store) -> None:
    accumulator = Accumulator(kv_store)

    asyncio.run(accumulator.load())

    assert len(accumulator) == 0


def test_clear_all_persists_empty_state(memory_store) -> None:
    accumulator = Accumulator(memory_store)
    accumulator.merge("p-1", Fragment(details={"productName": "Boot"}))
    asyncio.run(accumulator.save())

    asyncio.run(accumulator.clear_all())

    assert len(accumulator) == 0
    assert memory_store.values[CACHE_KEY] == {}
