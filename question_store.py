"""Loading true/false question pools from per-section CSV resources."""

from __future__ import annotations

import io
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import (Dict, List, Optional, Protocol, Sequence, Set, Tuple,
                    Union)

import pandas as pd
import requests

from quiz_config import (EXCLUDED_TEXT_MARKER, FIRST_STEP_DIR,
                         FIRST_STEP_SECTIONS, SECOND_STEP_DIR,
                         SECOND_STEP_ID_PREFIX, SECOND_STEP_SECTION_OFFSET,
                         SECOND_STEP_SECTIONS, QuizError, QuizMode,
                         get_quiz_config)

logger = logging.getLogger(__name__)

QUESTIONS_FILE = "questions.csv"
ANSWERS_FILE = "answers.csv"


class ResourceFetchError(QuizError):
    """Raised when a named question resource cannot be retrieved."""


class IncompletePoolError(QuizError):
    """Raised when some sections of a pool failed to load.

    Carries whatever was loaded so callers can still use it uncached.
    """

    def __init__(self, pool: List["Question"], skipped: List["SectionSource"]) -> None:
        super().__init__(f"{len(skipped)} section(s) failed to load")
        self.pool = pool
        self.skipped = skipped


class ResourceFetcher(Protocol):
    def fetch(self, name: str) -> str:
        ...


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    answer: bool
    section: int
    explanation: Optional[str] = None


@dataclass(frozen=True)
class SectionSource:
    """One section of one tier, as laid out in the question store."""

    tier_dir: str
    section: int
    second_step: bool = False

    @property
    def questions_path(self) -> str:
        return f"{self.tier_dir}/{self.section}/{QUESTIONS_FILE}"

    @property
    def answers_path(self) -> str:
        return f"{self.tier_dir}/{self.section}/{ANSWERS_FILE}"

    @property
    def section_number(self) -> int:
        if self.second_step:
            return self.section + SECOND_STEP_SECTION_OFFSET
        return self.section

    def global_id(self, local_id: str) -> str:
        if self.second_step:
            return f"{SECOND_STEP_ID_PREFIX}-{self.section}-{local_id}"
        return f"{self.section}-{local_id}"


class FileResourceFetcher:
    """Read question resources from a local directory tree."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def fetch(self, name: str) -> str:
        path = self.root / name
        try:
            return path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise ResourceFetchError(f"Failed to read {path}: {exc}") from exc


class HttpResourceFetcher:
    """Fetch question resources relative to a base URL."""

    def __init__(self, base_url: str, timeout: float = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch(self, name: str) -> str:
        url = f"{self.base_url}/{name.lstrip('/')}"
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ResourceFetchError(f"Failed to fetch {url}: {exc}") from exc
        # Static CSV is served without a charset; requests would assume Latin-1.
        try:
            return response.content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ResourceFetchError(f"{url} is not UTF-8: {exc}") from exc


def build_fetcher(source: str) -> Union[HttpResourceFetcher, FileResourceFetcher]:
    if source.startswith(("http://", "https://")):
        return HttpResourceFetcher(source)
    return FileResourceFetcher(source)


def parse_csv_rows(text: str) -> List[Dict[str, str]]:
    """Parse header-plus-rows CSV text into string dictionaries.

    Rows shorter than the header are padded with empty strings; fields past
    the last header column are dropped.
    """

    body = text.strip()
    if not body:
        return []
    try:
        header = pd.read_csv(io.StringIO(body), nrows=0, index_col=False).columns
        df = pd.read_csv(
            io.StringIO(body),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
            usecols=list(header),
        )
    except pd.errors.EmptyDataError:
        return []
    df.columns = [str(col).strip().lstrip("\ufeff") for col in df.columns]
    df = df.fillna("")
    return df.to_dict(orient="records")


def build_section_questions(
    source: SectionSource,
    question_rows: Sequence[Dict[str, str]],
    answer_rows: Sequence[Dict[str, str]],
) -> List[Question]:
    answer_map: Dict[str, Tuple[bool, str]] = {}
    for row in answer_rows:
        local_id = str(row.get("id", "")).strip()
        if not local_id:
            continue
        answer_map[local_id] = (
            str(row.get("answer", "")).strip() == "true",
            str(row.get("explain", "")).strip(),
        )

    questions: List[Question] = []
    for row in question_rows:
        local_id = str(row.get("id", "")).strip()
        text = str(row.get("question", "")).strip()
        if not text or EXCLUDED_TEXT_MARKER in text:
            continue
        matched = answer_map.get(local_id)
        if matched is None:
            logger.debug("No answer for question %s in section %s", local_id, source.section_number)
            continue
        answer, explanation = matched
        questions.append(
            Question(
                id=source.global_id(local_id),
                text=text,
                answer=answer,
                section=source.section_number,
                explanation=explanation or None,
            )
        )
    return questions


def get_section_sources(mode: QuizMode | str) -> List[SectionSource]:
    sources = [SectionSource(FIRST_STEP_DIR, section) for section in FIRST_STEP_SECTIONS]
    if get_quiz_config(mode).include_second_step:
        sources.extend(
            SectionSource(SECOND_STEP_DIR, section, second_step=True)
            for section in SECOND_STEP_SECTIONS
        )
    return sources


def load_pool_report(
    mode: QuizMode | str,
    fetcher: ResourceFetcher,
    sources: Optional[Sequence[SectionSource]] = None,
    max_workers: int = 8,
) -> Tuple[List[Question], List[SectionSource]]:
    """Load every section of ``mode``.

    Returns the deduplicated pool and the sections that were skipped because
    their resources could not be fetched or parsed.
    """

    if sources is None:
        sources = get_section_sources(mode)
    pending: List[Tuple[SectionSource, Future, Future]] = []
    pool: List[Question] = []
    skipped: List[SectionSource] = []
    seen: Set[str] = set()
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        for source in sources:
            pending.append(
                (
                    source,
                    executor.submit(fetcher.fetch, source.questions_path),
                    executor.submit(fetcher.fetch, source.answers_path),
                )
            )
        for source, questions_future, answers_future in pending:
            try:
                question_rows = parse_csv_rows(questions_future.result())
                answer_rows = parse_csv_rows(answers_future.result())
                section_questions = build_section_questions(source, question_rows, answer_rows)
            except Exception as exc:
                logger.warning(
                    "Skipping section %s (%s): %s", source.section_number, source.tier_dir, exc
                )
                skipped.append(source)
                continue
            for question in section_questions:
                if question.id in seen:
                    logger.warning("Dropping duplicate question id %s", question.id)
                    continue
                seen.add(question.id)
                pool.append(question)
    logger.info("Loaded %s questions for mode %s", len(pool), QuizMode(mode).value)
    return pool, skipped


def load_pool(
    mode: QuizMode | str,
    fetcher: ResourceFetcher,
    sources: Optional[Sequence[SectionSource]] = None,
    max_workers: int = 8,
) -> List[Question]:
    pool, _skipped = load_pool_report(mode, fetcher, sources, max_workers)
    return pool
