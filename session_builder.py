"""Selecting the questions of one quiz attempt."""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence

from question_store import Question
from quiz_config import QuizConfig
from review_ledger import ReviewLedger

logger = logging.getLogger(__name__)


def assemble_session(
    pool: Sequence[Question],
    ledger: ReviewLedger,
    config: QuizConfig,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Return required review questions followed by a random sample.

    Required questions are never truncated, so the session can be longer
    than ``config.question_count``. It is shorter when the pool runs out.
    """

    rng = rng or random.Random()
    required_ids = ledger.required_ids()
    required = [question for question in pool if question.id in required_ids]
    remaining = [question for question in pool if question.id not in required_ids]
    rng.shuffle(remaining)
    remaining_count = max(config.question_count - len(required), 0)
    selected = required + remaining[:remaining_count]
    logger.info(
        "Assembled session of %s questions (%s required, pool %s)",
        len(selected),
        len(required),
        len(pool),
    )
    return selected
