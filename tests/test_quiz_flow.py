import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from question_store import Question
from quiz_config import QuizMode, get_quiz_config
from quiz_flow import FlowState, QuizFlow
from review_ledger import MappingReviewStore, ReviewLedger
from scoring import QuizSession, QuizStateError


def make_session(count: int) -> QuizSession:
    questions = [Question(id=f"1-{i}", text=f"Q{i}", answer=True, section=1) for i in range(count)]
    return QuizSession(questions, get_quiz_config(QuizMode.PROVISIONAL), ReviewLedger(), MappingReviewStore({}))


def test_full_flow_reaches_results():
    flow = QuizFlow()
    token = flow.start(QuizMode.PROVISIONAL)
    assert flow.state == FlowState.LOADING

    session = make_session(1)
    assert flow.finish_loading(token, session)
    assert flow.state == FlowState.IN_QUIZ

    with pytest.raises(QuizStateError):
        flow.show_results()

    session.submit(True)
    session.advance()
    flow.show_results()
    assert flow.state == FlowState.RESULTS

    flow.reset()
    assert flow.state == FlowState.MODE_SELECT
    assert flow.session is None


def test_empty_session_is_reported_as_no_questions():
    flow = QuizFlow()
    token = flow.start("full")
    assert flow.mode == QuizMode.FULL
    flow.finish_loading(token, make_session(0))
    assert flow.state == FlowState.NO_QUESTIONS


def test_load_after_reset_is_discarded():
    flow = QuizFlow()
    stale_token = flow.start(QuizMode.PROVISIONAL)
    flow.reset()
    assert not flow.finish_loading(stale_token, make_session(2))
    assert flow.state == FlowState.MODE_SELECT

    fresh_token = flow.start(QuizMode.FULL)
    assert not flow.finish_loading(stale_token, make_session(2))
    assert flow.finish_loading(fresh_token, make_session(2))
    assert flow.state == FlowState.IN_QUIZ


def test_start_twice_is_rejected():
    flow = QuizFlow()
    flow.start(QuizMode.PROVISIONAL)
    with pytest.raises(QuizStateError):
        flow.start(QuizMode.FULL)
