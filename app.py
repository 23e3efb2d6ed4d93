import logging
import random
from typing import List

import streamlit as st
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from question_store import (IncompletePoolError, Question, build_fetcher,
                            load_pool_report)
from quiz_config import (DATA_DIR, DB_PATH, QUIZ_CONFIG, QuizMode,
                         get_question_source, get_quiz_config,
                         get_shuffle_seed)
from quiz_flow import FlowState, QuizFlow
from review_ledger import SQLReviewStore, metadata
from scoring import QuizSession, format_answer
from session_builder import assemble_session

APP_TITLE = "🚗 運転免許試験クイズ"

logger = logging.getLogger(__name__)
if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)


@st.cache_resource
def get_engine() -> Engine:
    DATA_DIR.mkdir(exist_ok=True)
    engine = create_engine(f"sqlite:///{DB_PATH}", future=True)
    metadata.create_all(engine)
    return engine


def get_review_store() -> SQLReviewStore:
    return SQLReviewStore(get_engine())


@st.cache_data(show_spinner=False)
def load_pool_cached(mode_value: str, source: str) -> List[Question]:
    # Raising keeps partial or empty pools out of the cache.
    pool, skipped = load_pool_report(mode_value, build_fetcher(source))
    if skipped or not pool:
        raise IncompletePoolError(pool, skipped)
    return pool


def load_questions(mode: QuizMode) -> List[Question]:
    try:
        return load_pool_cached(mode.value, get_question_source())
    except IncompletePoolError as exc:
        logger.warning("Using uncached %s pool: %s", mode.value, exc)
        return exc.pool


def init_session_state() -> None:
    defaults = {
        "flow": QuizFlow(),
        "save_error": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def get_flow() -> QuizFlow:
    return st.session_state["flow"]


def start_quiz(mode: QuizMode) -> None:
    get_flow().start(mode)


def submit_answer(answer: bool) -> None:
    session = get_flow().session
    if session is None:
        return
    try:
        session.submit(answer)
        st.session_state["save_error"] = None
    except SQLAlchemyError as exc:
        logger.exception("Failed to save review ledger")
        st.session_state["save_error"] = str(exc)


def next_question() -> None:
    flow = get_flow()
    if flow.session is None:
        return
    flow.session.advance()
    if flow.session.is_complete:
        flow.show_results()


def reset_quiz() -> None:
    get_flow().reset()
    st.session_state["save_error"] = None


def render_reset_button() -> None:
    st.button("モード選択に戻る", key="reset_quiz", on_click=reset_quiz)


def render_mode_select() -> None:
    st.subheader("モードを選択してください")
    review_count = len(get_review_store().load().required_ids())
    if review_count:
        st.caption(f"復習が必要な問題: {review_count}問 (次回のテストに必ず出題されます)")
    columns = st.columns(len(QUIZ_CONFIG))
    for column, (mode, config) in zip(columns, QUIZ_CONFIG.items()):
        with column:
            st.markdown(f"### {config.name}")
            st.write(f"問題数: {config.question_count}問")
            st.write(f"合格ライン: {config.pass_rate}%以上")
            st.button(
                "開始する",
                key=f"start_{mode.value}",
                on_click=start_quiz,
                args=(mode,),
                type="primary",
            )


def run_loading(flow: QuizFlow) -> None:
    token = flow.load_token
    mode = flow.mode or QuizMode.PROVISIONAL
    config = get_quiz_config(mode)
    store = get_review_store()
    with st.spinner("問題を読み込んでいます..."):
        pool = load_questions(mode)
        ledger = store.load()
        questions = assemble_session(pool, ledger, config, random.Random(get_shuffle_seed()))
    flow.finish_loading(token, QuizSession(questions, config, ledger, store))


def render_no_questions() -> None:
    st.error("問題の読み込みに失敗しました。")
    render_reset_button()


def render_question(flow: QuizFlow) -> None:
    session = flow.session
    question = session.current_question
    position, total = session.progress
    st.caption(f"問題 {position} / {total}")
    st.progress(position / total)
    st.markdown(f"#### {question.text}")

    if st.session_state.get("save_error"):
        st.warning(f"復習データの保存に失敗しました: {st.session_state['save_error']}")

    is_correct = session.last_answer_correct
    if is_correct is None:
        true_col, false_col = st.columns(2)
        true_col.button("⭕ マル", key="answer_true", on_click=submit_answer, args=(True,))
        false_col.button("❌ バツ", key="answer_false", on_click=submit_answer, args=(False,))
    else:
        if is_correct:
            st.success("正解！")
        else:
            st.error("不正解")
        st.write(f"正解: {format_answer(question.answer)}")
        if not is_correct and question.explanation:
            st.info(question.explanation)
        label = "結果を見る" if session.is_last_question else "次へ →"
        st.button(label, key="next_question", on_click=next_question, type="primary")
    render_reset_button()


def render_results(flow: QuizFlow) -> None:
    result = flow.session.result()
    config = get_quiz_config(flow.mode)
    st.subheader(f"{config.name} の結果")
    score_col, rate_col, line_col = st.columns(3)
    score_col.metric("得点", f"{result.score} / {result.total}")
    rate_col.metric("正答率", f"{result.percentage}%")
    line_col.metric("合格ライン", f"{config.pass_rate}%")
    if result.passed:
        st.success("合格です！おめでとうございます！")
    else:
        st.error("不合格です。もう一度頑張りましょう！")
    st.markdown("#### 回答一覧")
    st.dataframe(result.report_frame(), hide_index=True)
    render_reset_button()


def main() -> None:
    st.set_page_config(page_title="運転免許試験クイズ", layout="centered")
    init_session_state()
    st.title(APP_TITLE)
    flow = get_flow()

    if flow.state == FlowState.LOADING:
        run_loading(flow)

    if flow.state == FlowState.MODE_SELECT:
        render_mode_select()
    elif flow.state == FlowState.NO_QUESTIONS:
        render_no_questions()
    elif flow.state == FlowState.IN_QUIZ:
        render_question(flow)
    elif flow.state == FlowState.RESULTS:
        render_results(flow)


if __name__ == "__main__":
    main()
