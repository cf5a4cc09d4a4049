from collections.abc import Iterable, Mapping
import logging


logger = logging.getLogger(__name__)

ROOT_KEYS = ("retailerName", "market", "site", "details", "reviews", "questionsAndAnswers")

DETAILS_KEYS = (
    "productName",
    "category",
    "subcategory",
    "brand",
    "retailerProductCode",
    "upc",
    "manufacturer",
    "productUrl",
    "numberOfReviews",
    "rating",
    "aboutThisItem",
    "additionalProductDescription",
    "ingredients",
    "productImageUrl",
    "dateFirstAvailable",
    "dateAddedToCatalog",
)
MIN_DETAILS_KEYS = ("productName", "productUrl", "numberOfReviews", "rating")

REVIEW_KEYS = (
    "internalReviewId",
    "retailerReviewId",
    "reviewDate",
    "reviewDateISO",
    "rating",
    "reviewTitle",
    "reviewText",
    "parentOrChild",
    "reviewUrl",
    "reviewType",
    "verifiedPurchase",
    "helpfulReviewCount",
    "reviewCustomerImages",
)
QUESTION_KEYS = ("questionId", "questionUrl", "questionDate", "questionDateISO", "question", "answers")
ANSWER_KEYS = ("answerId", "answerDate", "answer")


def validate_keys(kind: str, expected_keys: Iterable[str], data_keys: Iterable[str]) -> bool:
    expected = list(expected_keys)
    actual = list(data_keys)
    missing = [key for key in expected if key not in actual]
    additional = [key for key in actual if key not in expected]

    errors: list[str] = []
    if missing:
        errors.append(f"Missing keys: {', '.join(missing)}")
    if additional:
        errors.append(f"Additional keys: {', '.join(additional)}")

    if errors:
        logger.error('Invalid output format for "%s" (%s)!', kind, ", ".join(errors))
        return False
    return True


def validate_values(kind: str, data: Mapping[str, object]) -> bool:
    valid = True
    for key, value in data.items():
        if value is None:
            logger.error('Invalid value null for key "%s.%s"!', kind, key)
            valid = False
    return valid


def _validate_entries(
    kind: str,
    entries: object,
    expected_keys: tuple[str, ...],
    results: list[bool],
) -> list[Mapping[str, object]]:
    """Check a list of entries, stopping at the first key set mismatch."""
    checked: list[Mapping[str, object]] = []
    if not isinstance(entries, list):
        return checked

    for entry in entries:
        if not isinstance(entry, Mapping):
            logger.error('Invalid output format for "%s" (entry is %s, not an object)!', kind, type(entry).__name__)
            results.append(False)
            break
        if not validate_keys(kind, expected_keys, entry.keys()):
            results.append(False)
            break
        results.append(validate_values(kind, entry))
        checked.append(entry)
    return checked


def validate_output(record: Mapping[str, object]) -> bool:
    """Return True when a finished product record has the exact output shape.

    Every failure is logged with its path (root, details, review, question,
    answer); nothing is raised.
    """
    results: list[bool] = []

    results.append(validate_keys("root", ROOT_KEYS, record.keys()))
    results.append(validate_values("root", record))

    details = record.get("details")
    if not isinstance(details, Mapping):
        logger.error('Invalid output format for "details" (expected an object)!')
        results.append(False)
        details = {}

    # Some retailers only publish the minimum detail fields.
    if len(details) <= len(MIN_DETAILS_KEYS):
        results.append(validate_keys("details", MIN_DETAILS_KEYS, details.keys()))
    else:
        results.append(validate_keys("details", DETAILS_KEYS, details.keys()))
    results.append(validate_values("details", details))

    _validate_entries("review", record.get("reviews"), REVIEW_KEYS, results)

    questions = _validate_entries("question", record.get("questionsAndAnswers"), QUESTION_KEYS, results)
    for question in questions:
        _validate_entries("answer", question.get("answers"), ANSWER_KEYS, results)

    return all(results)
