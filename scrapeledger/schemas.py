from dataclasses import dataclass, field
from datetime import datetime
from typing import TypedDict


class Answer(TypedDict):
    answerId: str
    answerDate: str
    answer: str


class Question(TypedDict):
    questionId: str
    questionUrl: str
    questionDate: str
    questionDateISO: str
    question: str
    answers: list[Answer]


class Review(TypedDict):
    internalReviewId: str
    retailerReviewId: str
    reviewDate: str
    reviewDateISO: str
    rating: float
    reviewTitle: str
    reviewText: str
    parentOrChild: str
    reviewUrl: str
    reviewType: str
    verifiedPurchase: bool
    helpfulReviewCount: int
    reviewCustomerImages: list[str]


@dataclass(frozen=True)
class Fragment:
    details: dict[str, object] = field(default_factory=dict)
    reviews: list[Review] = field(default_factory=list)
    questions_and_answers: list[Question] = field(default_factory=list)


@dataclass
class PartialRecord:
    details: dict[str, object] = field(default_factory=dict)
    reviews: list[Review] = field(default_factory=list)
    questions_and_answers: list[Question] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "details": self.details,
            "reviews": self.reviews,
            "questionsAndAnswers": self.questions_and_answers,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "PartialRecord":
        return cls(
            details=dict(payload.get("details") or {}),
            reviews=list(payload.get("reviews") or []),
            questions_and_answers=list(payload.get("questionsAndAnswers") or []),
        )


@dataclass(frozen=True)
class DatasetInfo:
    id: str
    created_at: datetime


@dataclass(frozen=True)
class RunEnvironment:
    run_id: str
    dataset_id: str


@dataclass(frozen=True)
class StatsSummary:
    scalars: dict[str, object]
    breakdowns: dict[str, dict[str, int]]
    block_ratio: float
