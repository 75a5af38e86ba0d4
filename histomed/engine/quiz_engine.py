# histomed/engine/quiz_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from histomed import messages
from histomed.ai.content_fetchers import ContentFetcher
from histomed.domain.enums import QuizPhase
from histomed.domain.models import QuizQuestion, QuizResult, Topic

logger = logging.getLogger(__name__)

UNANSWERED = -1


@dataclass
class QuizSession:
    phase: QuizPhase = QuizPhase.SELECTION
    selected_topic: Optional[Topic] = None
    questions: List[QuizQuestion] = field(default_factory=list)
    answers: List[int] = field(default_factory=list)
    score: int = 0
    current_index: int = 0
    revealed: bool = False
    error_message: str = ""
    # cresce a cada tópico escolhido; identifica a busca em andamento
    request_id: int = 0

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.phase != QuizPhase.ACTIVE or not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1


class QuizEngine:
    """
    SELECTION -> LOADING -> ACTIVE -> RESULT -> (reset) SELECTION.

    A GUI faz a busca numa thread: select_topic() devolve o número da
    requisição, fetcher.fetch_quiz_questions() roda fora da thread da interface
    e finish_loading() recebe o mesmo número de volta. Resultados de uma
    requisição anterior são descartados. start_quiz() faz as três etapas em sequência.
    """

    def __init__(self, fetcher: ContentFetcher):
        self.fetcher = fetcher

    # --- carregamento ---
    def select_topic(self, session: QuizSession, topic: Topic) -> int:
        session.request_id += 1
        session.selected_topic = topic
        session.error_message = ""
        session.phase = QuizPhase.LOADING
        return session.request_id

    def finish_loading(
        self, session: QuizSession, request_id: int, questions: Optional[List[QuizQuestion]]
    ) -> bool:
        if session.phase != QuizPhase.LOADING or request_id != session.request_id:
            # resultado de uma busca que já não interessa (reset ou outro tópico no meio do caminho)
            logger.info("[QUIZ] Resultado da requisição %s descartado", request_id)
            return False

        if not questions:
            logger.warning("[QUIZ] Nenhuma questão para %s",
                           session.selected_topic.title if session.selected_topic else "?")
            _clear(session)
            session.error_message = messages.QUIZ_LOAD_FAILED
            return False

        session.questions = list(questions)
        session.answers = [UNANSWERED] * len(questions)
        session.score = 0
        session.current_index = 0
        session.revealed = False
        session.error_message = ""
        session.phase = QuizPhase.ACTIVE
        return True

    def start_quiz(self, session: QuizSession, topic: Topic) -> bool:
        request_id = self.select_topic(session, topic)
        try:
            questions = self.fetcher.fetch_quiz_questions(topic.title)
        except Exception as e:
            logger.error("[QUIZ] Falha inesperada ao buscar questões: %s", e)
            questions = []
        return self.finish_loading(session, request_id, questions)

    # --- ciclo de resposta ---
    def answer(self, session: QuizSession, option_index: int) -> bool:
        """
        Registra a escolha e revela a explicação. Depois de revelada,
        novos cliques na mesma questão são ignorados.
        """
        if session.phase != QuizPhase.ACTIVE or session.revealed:
            return False

        q = session.questions[session.current_index]
        session.answers[session.current_index] = option_index
        session.revealed = True
        if option_index == q.correct_answer:
            session.score += 1
        return True

    def advance(self, session: QuizSession) -> None:
        if session.phase != QuizPhase.ACTIVE or not session.revealed:
            return
        if session.current_index < len(session.questions) - 1:
            session.current_index += 1
            session.revealed = False
        else:
            session.phase = QuizPhase.RESULT

    def reset(self, session: QuizSession) -> None:
        _clear(session)
        session.error_message = ""

    # --- consultas ---
    def option_state(self, session: QuizSession, option_index: int) -> str:
        """Cor da opção depois da revelação: 'correct', 'wrong' ou 'neutral'."""
        q = session.current_question
        if q is None or not session.revealed:
            return "neutral"
        if option_index == q.correct_answer:
            return "correct"
        if option_index == session.answers[session.current_index]:
            return "wrong"
        return "neutral"

    def result(self, session: QuizSession) -> QuizResult:
        history = [
            (q.id, session.answers[i] == q.correct_answer)
            for i, q in enumerate(session.questions)
        ]
        return QuizResult(score=session.score, total=len(session.questions), history=history)

    def result_message(self, session: QuizSession) -> str:
        return messages.QUIZ_PASSED if self.result(session).passed else messages.QUIZ_REVIEW


def _clear(session: QuizSession) -> None:
    session.phase = QuizPhase.SELECTION
    session.selected_topic = None
    session.questions = []
    session.answers = []
    session.score = 0
    session.current_index = 0
    session.revealed = False
