"""Review ledger: correct-answer streaks for questions that were missed."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Mapping, MutableMapping, Optional, Set, Union

from sqlalchemy import (Column, DateTime, MetaData, String, Table, Text,
                        func, select)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from quiz_config import GRADUATION_STREAK, REVIEW_STORAGE_KEY

logger = logging.getLogger(__name__)

Streak = Union[int, float]

metadata = MetaData()

review_state_table = Table(
    "review_state",
    metadata,
    Column("key", String, primary_key=True),
    Column("value", Text, nullable=False),
    Column("updated_at", DateTime, server_default=func.now(), onupdate=func.now()),
)


@dataclass(frozen=True)
class ReviewLedger:
    """Streak counts keyed by question id.

    An id is tracked from its first miss and dropped once it has been
    answered correctly ``GRADUATION_STREAK`` times in a row.
    """

    streaks: Mapping[str, Streak] = field(default_factory=dict)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self.streaks

    def __len__(self) -> int:
        return len(self.streaks)

    def get(self, question_id: str) -> Optional[Streak]:
        return self.streaks.get(question_id)

    def as_dict(self) -> Dict[str, Streak]:
        return dict(self.streaks)

    def required_ids(self) -> Set[str]:
        return {qid for qid, streak in self.streaks.items() if streak < GRADUATION_STREAK}

    def record(self, question_id: str, was_correct: bool) -> "ReviewLedger":
        streaks = dict(self.streaks)
        if not was_correct:
            streaks[question_id] = 0
            return ReviewLedger(streaks)
        current = streaks.get(question_id)
        if current is None:
            return self
        next_streak = current + 1
        if next_streak >= GRADUATION_STREAK:
            del streaks[question_id]
        else:
            streaks[question_id] = next_streak
        return ReviewLedger(streaks)


def _is_valid_streak(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def decode_ledger(raw: Optional[str]) -> ReviewLedger:
    """Build a ledger from stored JSON text, discarding anything unusable."""

    if not raw:
        return ReviewLedger()
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Ignoring malformed review ledger: %s", exc)
        return ReviewLedger()
    if not isinstance(parsed, dict):
        logger.warning("Ignoring review ledger of type %s", type(parsed).__name__)
        return ReviewLedger()
    cleaned = {str(key): value for key, value in parsed.items() if _is_valid_streak(value)}
    return ReviewLedger(cleaned)


def encode_ledger(ledger: ReviewLedger) -> str:
    return json.dumps(ledger.as_dict(), ensure_ascii=False)


class MappingReviewStore:
    """Keep the ledger as JSON text under one key of a mutable mapping."""

    def __init__(self, mapping: MutableMapping[str, object], key: str = REVIEW_STORAGE_KEY) -> None:
        self.mapping = mapping
        self.key = key

    def load(self) -> ReviewLedger:
        raw = self.mapping.get(self.key)
        if raw is not None and not isinstance(raw, str):
            logger.warning("Ignoring non-text review ledger under %s", self.key)
            return ReviewLedger()
        return decode_ledger(raw)

    def save(self, ledger: ReviewLedger) -> None:
        self.mapping[self.key] = encode_ledger(ledger)


class SQLReviewStore:
    """Persist the ledger in the ``review_state`` table."""

    def __init__(self, engine: Engine, key: str = REVIEW_STORAGE_KEY) -> None:
        self.engine = engine
        self.key = key

    def load(self) -> ReviewLedger:
        try:
            with self.engine.connect() as conn:
                raw = conn.execute(
                    select(review_state_table.c.value).where(review_state_table.c.key == self.key)
                ).scalar()
        except SQLAlchemyError as exc:
            logger.warning("Failed to load review ledger %s: %s", self.key, exc)
            return ReviewLedger()
        return decode_ledger(raw)

    def save(self, ledger: ReviewLedger) -> None:
        payload = encode_ledger(ledger)
        stmt = sqlite_insert(review_state_table).values(key=self.key, value=payload)
        stmt = stmt.on_conflict_do_update(
            index_elements=[review_state_table.c.key],
            set_={"value": payload, "updated_at": func.now()},
        )
        with self.engine.begin() as conn:
            conn.execute(stmt)
