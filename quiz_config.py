"""Quiz modes and runtime settings for the driver license quiz."""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import streamlit as st

logger = logging.getLogger(__name__)

DATA_DIR = Path("data")
DB_PATH = DATA_DIR / "quiz.db"
DEFAULT_QUESTION_SOURCE = "public/questions"
REVIEW_STORAGE_KEY = "driver-license-quiz-review-v1"

FIRST_STEP_DIR = "1st-step-sections"
SECOND_STEP_DIR = "2nd-step-sections"
FIRST_STEP_SECTIONS: Tuple[int, ...] = tuple(range(1, 15))
SECOND_STEP_SECTIONS: Tuple[int, ...] = tuple(range(1, 15))
SECOND_STEP_SECTION_OFFSET = 100
SECOND_STEP_ID_PREFIX = "2nd"

EXCLUDED_TEXT_MARKER = "この"
GRADUATION_STREAK = 3


class QuizError(Exception):
    """Base exception for quiz failures."""


class QuizMode(str, enum.Enum):
    PROVISIONAL = "provisional"
    FULL = "full"


@dataclass(frozen=True)
class QuizConfig:
    """Display name, session size and pass line of a quiz mode."""

    name: str
    question_count: int
    pass_rate: int
    include_second_step: bool = False


QUIZ_CONFIG = {
    QuizMode.PROVISIONAL: QuizConfig(
        name="仮免許効果測定",
        question_count=50,
        pass_rate=90,
    ),
    QuizMode.FULL: QuizConfig(
        name="本免許効果測定",
        question_count=90,
        pass_rate=90,
        include_second_step=True,
    ),
}


def get_quiz_config(mode: QuizMode | str) -> QuizConfig:
    return QUIZ_CONFIG[QuizMode(mode)]


def _read_setting(name: str) -> Optional[str]:
    """Look up ``name`` in Streamlit secrets first, then the environment."""

    secret_value: Optional[str]
    try:
        secret_value = st.secrets.get(name)  # type: ignore[attr-defined]
    except Exception:
        secret_value = None

    def _normalize(value: Optional[object]) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text if text else None

    value = _normalize(secret_value)
    if value:
        return value
    return _normalize(os.getenv(name))


def get_question_source() -> str:
    return _read_setting("QUIZ_QUESTION_SOURCE") or DEFAULT_QUESTION_SOURCE


def get_shuffle_seed() -> Optional[int]:
    raw = _read_setting("QUIZ_SEED")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer QUIZ_SEED value: %s", raw)
        return None
