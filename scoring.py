"""Answer-by-answer progression and scoring of a quiz session."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from question_store import Question
from quiz_config import QuizConfig, QuizError
from review_ledger import ReviewLedger

logger = logging.getLogger(__name__)


class QuizStateError(QuizError):
    """Raised for an operation that the current quiz state does not allow."""


class SessionState(str, enum.Enum):
    AWAITING_ANSWER = "awaiting_answer"
    ANSWERED = "answered"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ReportEntry:
    question_id: str
    text: str
    user_answer: bool
    correct_answer: bool
    is_correct: bool
    explanation: Optional[str] = None


@dataclass(frozen=True)
class QuizResult:
    score: int
    total: int
    percentage: int
    passed: bool
    entries: Tuple[ReportEntry, ...]

    def report_frame(self) -> pd.DataFrame:
        columns = ["問題", "あなたの回答", "正解", "判定", "解説"]
        rows = [
            {
                "問題": entry.text,
                "あなたの回答": format_answer(entry.user_answer),
                "正解": format_answer(entry.correct_answer),
                "判定": "✓ 正解" if entry.is_correct else "✗ 不正解",
                "解説": entry.explanation or "",
            }
            for entry in self.entries
        ]
        return pd.DataFrame(rows, columns=columns)


def format_answer(value: bool) -> str:
    return "⭕ マル" if value else "❌ バツ"


def compute_percentage(score: int, total: int) -> int:
    """Percentage rounded half up."""

    if total <= 0:
        return 0
    return int(math.floor(100 * score / total + 0.5))


class QuizSession:
    """Walk a fixed list of questions, recording one answer per question.

    Each answer is folded into the review ledger and saved through
    ``store`` immediately.
    """

    def __init__(
        self,
        questions: Sequence[Question],
        config: QuizConfig,
        ledger: ReviewLedger,
        store,
    ) -> None:
        self.questions: List[Question] = list(questions)
        self.config = config
        self.ledger = ledger
        self.store = store
        self.answers: List[bool] = []
        self.index = 0
        self.state = SessionState.AWAITING_ANSWER if self.questions else SessionState.COMPLETE

    def __len__(self) -> int:
        return len(self.questions)

    @property
    def is_complete(self) -> bool:
        return self.state == SessionState.COMPLETE

    @property
    def current_question(self) -> Optional[Question]:
        if self.is_complete:
            return None
        return self.questions[self.index]

    @property
    def progress(self) -> Tuple[int, int]:
        return min(self.index + 1, len(self.questions)), len(self.questions)

    @property
    def is_last_question(self) -> bool:
        return self.index + 1 >= len(self.questions)

    @property
    def last_answer_correct(self) -> Optional[bool]:
        if self.state != SessionState.ANSWERED:
            return None
        return self.answers[self.index] == self.questions[self.index].answer

    def submit(self, answer: bool) -> Optional[bool]:
        if self.state != SessionState.AWAITING_ANSWER:
            return None
        question = self.questions[self.index]
        is_correct = answer == question.answer
        self.answers.append(answer)
        self.state = SessionState.ANSWERED
        self.ledger = self.ledger.record(question.id, is_correct)
        self.store.save(self.ledger)
        return is_correct

    def advance(self) -> SessionState:
        if self.state != SessionState.ANSWERED:
            return self.state
        if self.index + 1 < len(self.questions):
            self.index += 1
            self.state = SessionState.AWAITING_ANSWER
        else:
            self.state = SessionState.COMPLETE
        return self.state

    def result(self) -> QuizResult:
        if not self.is_complete:
            raise QuizStateError("Quiz session is not complete yet")
        entries = []
        for question, user_answer in zip(self.questions, self.answers):
            is_correct = user_answer == question.answer
            entries.append(
                ReportEntry(
                    question_id=question.id,
                    text=question.text,
                    user_answer=user_answer,
                    correct_answer=question.answer,
                    is_correct=is_correct,
                    explanation=None if is_correct else question.explanation,
                )
            )
        score = sum(1 for entry in entries if entry.is_correct)
        total = len(self.questions)
        percentage = compute_percentage(score, total)
        passed = percentage >= self.config.pass_rate
        logger.info("Quiz finished: %s/%s (%s%%), passed=%s", score, total, percentage, passed)
        return QuizResult(
            score=score,
            total=total,
            percentage=percentage,
            passed=passed,
            entries=tuple(entries),
        )
