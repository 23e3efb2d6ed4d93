import sys
from pathlib import Path

from sqlalchemy import create_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from review_ledger import (MappingReviewStore, ReviewLedger, SQLReviewStore,
                           decode_ledger, metadata)
from quiz_config import REVIEW_STORAGE_KEY


def make_sql_store(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'quiz.db'}", future=True)
    metadata.create_all(engine)
    return SQLReviewStore(engine)


def test_correct_answer_increments_tracked_streak():
    ledger = ReviewLedger({"1-1": 0, "1-2": 1})
    ledger = ledger.record("1-1", True).record("1-2", True)
    assert ledger.as_dict() == {"1-1": 1, "1-2": 2}


def test_correct_answer_at_streak_two_graduates():
    ledger = ReviewLedger({"5-2": 2})
    assert ledger.record("5-2", True).as_dict() == {}


def test_correct_answer_on_untracked_question_is_ignored():
    ledger = ReviewLedger({"1-1": 1})
    assert ledger.record("9-9", True).as_dict() == {"1-1": 1}


def test_incorrect_answer_resets_and_tracks():
    ledger = ReviewLedger({"1-1": 2})
    ledger = ledger.record("1-1", False).record("2-3", False)
    assert ledger.as_dict() == {"1-1": 0, "2-3": 0}


def test_record_does_not_mutate_original():
    original = ReviewLedger({"1-1": 1})
    original.record("1-1", False)
    assert original.as_dict() == {"1-1": 1}


def test_required_ids_excludes_graduated_values():
    ledger = ReviewLedger({"1-1": 0, "1-2": 2, "1-3": 3})
    assert ledger.required_ids() == {"1-1", "1-2"}


def test_decode_ledger_degrades_to_empty():
    assert decode_ledger(None).as_dict() == {}
    assert decode_ledger("{not json").as_dict() == {}
    assert decode_ledger("[1, 2]").as_dict() == {}
    assert decode_ledger("null").as_dict() == {}


def test_decode_ledger_discards_invalid_values():
    raw = '{"1-1": 1, "1-2": -1, "1-3": "2", "1-4": true, "1-5": null, "1-6": 0, "1-7": 1e999}'
    assert decode_ledger(raw).as_dict() == {"1-1": 1, "1-6": 0}


def test_mapping_store_round_trip():
    state: dict = {}
    store = MappingReviewStore(state)
    store.save(ReviewLedger({"3-1": 1, "4-2": 0}))
    assert REVIEW_STORAGE_KEY in state
    assert store.load().as_dict() == {"3-1": 1, "4-2": 0}


def test_mapping_store_ignores_non_text_state():
    store = MappingReviewStore({REVIEW_STORAGE_KEY: {"1-1": 0}})
    assert store.load().as_dict() == {}


def test_sql_store_round_trip_and_overwrite(tmp_path):
    store = make_sql_store(tmp_path)
    assert store.load().as_dict() == {}

    store.save(ReviewLedger({"3-1": 1, "4-2": 0}))
    assert store.load().as_dict() == {"3-1": 1, "4-2": 0}

    store.save(ReviewLedger({"4-2": 1}))
    assert store.load().as_dict() == {"4-2": 1}


def test_sql_store_missing_table_loads_empty(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}", future=True)
    assert SQLReviewStore(engine).load().as_dict() == {}
