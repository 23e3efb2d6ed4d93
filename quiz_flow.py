"""Screen-level state of the quiz application."""

from __future__ import annotations

import enum
import logging
from typing import Optional

from quiz_config import QuizMode
from scoring import QuizSession, QuizStateError

logger = logging.getLogger(__name__)


class FlowState(str, enum.Enum):
    MODE_SELECT = "mode_select"
    LOADING = "loading"
    IN_QUIZ = "in_quiz"
    NO_QUESTIONS = "no_questions"
    RESULTS = "results"


class QuizFlow:
    """Mode select -> loading -> quiz -> results, with reset from anywhere.

    Each ``start`` hands out a load token; a load that finishes after a
    reset carries a stale token and is dropped.
    """

    def __init__(self) -> None:
        self.state = FlowState.MODE_SELECT
        self.mode: Optional[QuizMode] = None
        self.session: Optional[QuizSession] = None
        self._load_token = 0

    @property
    def load_token(self) -> int:
        return self._load_token

    def start(self, mode: QuizMode | str) -> int:
        if self.state != FlowState.MODE_SELECT:
            raise QuizStateError(f"Cannot start a quiz from {self.state.value}")
        self.mode = QuizMode(mode)
        self.session = None
        self._load_token += 1
        self.state = FlowState.LOADING
        return self._load_token

    def finish_loading(self, token: int, session: QuizSession) -> bool:
        if token != self._load_token or self.state != FlowState.LOADING:
            logger.info("Discarding stale quiz load (token %s)", token)
            return False
        self.session = session
        self.state = FlowState.IN_QUIZ if len(session) else FlowState.NO_QUESTIONS
        return True

    def show_results(self) -> None:
        if self.state != FlowState.IN_QUIZ or self.session is None or not self.session.is_complete:
            raise QuizStateError("Results are only available after the last answer")
        self.state = FlowState.RESULTS

    def reset(self) -> None:
        self._load_token += 1
        self.state = FlowState.MODE_SELECT
        self.session = None
