import pytest

from conftest import FakeGeminiClient, make_question, quiz_payload
from histomed import messages
from histomed.ai.content_fetchers import ContentFetcher
from histomed.domain.enums import QuizPhase
from histomed.domain.topics import get_topic
from histomed.engine.quiz_engine import UNANSWERED, QuizEngine, QuizSession
from histomed.errors import ServiceError


def _active(engine, n=3, correct=0):
    session = QuizSession()
    request_id = engine.select_topic(session, get_topic("epitelial"))
    engine.finish_loading(session, request_id, [make_question(i + 1, correct) for i in range(n)])
    return session


@pytest.fixture
def engine():
    return QuizEngine(ContentFetcher(None))


def test_epithelial_tissue_scenario():
    engine = QuizEngine(ContentFetcher(FakeGeminiClient(json_data=quiz_payload(10))))
    session = QuizSession()

    assert engine.start_quiz(session, get_topic("epitelial"))
    assert session.phase == QuizPhase.ACTIVE
    assert len(session.questions) == 10
    assert session.answers == [UNANSWERED] * 10

    assert engine.answer(session, session.current_question.correct_answer)
    assert session.score == 1
    assert session.revealed

    assert not engine.answer(session, session.current_question.correct_answer)
    assert session.score == 1

    for _ in range(9):
        engine.advance(session)
        engine.answer(session, 2)
    engine.advance(session)

    assert session.phase == QuizPhase.RESULT
    assert 0 <= session.score <= 10
    assert len(session.answers) == len(session.questions)


def test_fetch_failure_returns_to_selection():
    engine = QuizEngine(ContentFetcher(FakeGeminiClient(error=ServiceError("offline"))))
    session = QuizSession()

    assert not engine.start_quiz(session, get_topic("epitelial"))
    assert session.phase == QuizPhase.SELECTION
    assert session.questions == []
    assert session.answers == []
    assert session.score == 0
    assert session.error_message == messages.QUIZ_LOAD_FAILED


def test_fetcher_exception_is_contained():
    class Exploding(ContentFetcher):
        def fetch_quiz_questions(self, topic_title):
            raise RuntimeError("boom")

    engine = QuizEngine(Exploding(None))
    session = QuizSession()
    assert not engine.start_quiz(session, get_topic("osseo"))
    assert session.phase == QuizPhase.SELECTION


def test_empty_fetch_returns_to_selection(engine):
    session = QuizSession()
    request_id = engine.select_topic(session, get_topic("nervoso"))
    assert not engine.finish_loading(session, request_id, [])
    assert session.phase == QuizPhase.SELECTION
    assert session.selected_topic is None


def test_select_topic_enters_loading(engine):
    session = QuizSession(error_message="antigo")
    engine.select_topic(session, get_topic("pele"))
    assert session.phase == QuizPhase.LOADING
    assert session.error_message == ""


def test_stale_fetch_result_is_ignored(engine):
    session = QuizSession()
    request_id = engine.select_topic(session, get_topic("pele"))
    engine.reset(session)

    assert not engine.finish_loading(session, request_id, [make_question()])
    assert session.phase == QuizPhase.SELECTION
    assert session.questions == []


def test_late_result_for_previous_topic_is_ignored(engine):
    session = QuizSession()
    first = engine.select_topic(session, get_topic("osseo"))
    engine.reset(session)
    second = engine.select_topic(session, get_topic("pele"))
    assert second != first

    assert not engine.finish_loading(session, first, [make_question(qid=99)])
    assert session.phase == QuizPhase.LOADING
    assert session.selected_topic == get_topic("pele")
    assert session.questions == []

    assert engine.finish_loading(session, second, [make_question(qid=1)])
    assert session.phase == QuizPhase.ACTIVE
    assert [q.id for q in session.questions] == [1]


def test_topic_switch_without_reset_keeps_latest_request(engine):
    session = QuizSession()
    first = engine.select_topic(session, get_topic("osseo"))
    second = engine.select_topic(session, get_topic("muscular"))

    assert not engine.finish_loading(session, first, [])
    assert session.phase == QuizPhase.LOADING
    assert session.error_message == ""
    assert engine.finish_loading(session, second, [make_question()])


def test_revealed_question_ignores_other_option(engine):
    session = _active(engine, correct=1)
    engine.answer(session, 3)
    engine.answer(session, 1)

    assert session.answers[0] == 3
    assert session.score == 0


def test_score_matches_correct_answers(engine):
    session = _active(engine, n=4, correct=2)
    for choice in (2, 0, 2, 1):
        engine.answer(session, choice)
        engine.advance(session)

    assert session.phase == QuizPhase.RESULT
    expected = sum(1 for a, q in zip(session.answers, session.questions) if a == q.correct_answer)
    assert session.score == expected == 2
    assert session.score <= len(session.questions)


def test_unanswered_question_counts_as_wrong(engine):
    session = _active(engine, n=2)
    # avanço sem resposta não sai do lugar
    engine.advance(session)
    assert session.current_index == 0

    session.revealed = True
    engine.advance(session)
    engine.answer(session, 0)
    engine.advance(session)

    result = engine.result(session)
    assert session.answers[0] == UNANSWERED
    assert result.score == 1
    assert result.history == [(1, False), (2, True)]


def test_advancing_n_times_reaches_result_and_reset_clears(engine):
    n = 5
    session = _active(engine, n=n)
    for _ in range(n):
        engine.answer(session, 0)
        engine.advance(session)
    assert session.phase == QuizPhase.RESULT

    engine.reset(session)
    assert session.phase == QuizPhase.SELECTION
    assert session.questions == []
    assert session.answers == []
    assert session.score == 0


def test_answer_ignored_outside_active(engine):
    session = QuizSession()
    assert not engine.answer(session, 0)


def test_option_state_colors(engine):
    session = _active(engine, correct=1)
    assert engine.option_state(session, 1) == "neutral"

    engine.answer(session, 3)
    assert engine.option_state(session, 1) == "correct"
    assert engine.option_state(session, 3) == "wrong"
    assert engine.option_state(session, 0) == "neutral"


def test_result_message_uses_pass_mark(engine):
    session = _active(engine, n=10)
    for i in range(10):
        engine.answer(session, 0 if i < 7 else 1)
        engine.advance(session)
    assert engine.result(session).passed
    assert engine.result_message(session) == messages.QUIZ_PASSED

    session = _active(engine, n=10)
    for _ in range(10):
        engine.answer(session, 3)
        engine.advance(session)
    assert engine.result_message(session) == messages.QUIZ_REVIEW
