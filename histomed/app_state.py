# histomed/app_state.py
from __future__ import annotations

import logging
from typing import Any, Optional

from histomed.ai.content_fetchers import ContentFetcher, LibraryCatalog
from histomed.ai.gemini_client import GeminiClient, GeminiConfig
from histomed.auth.session import AuthController, AuthOutcome, create_auth_client
from histomed.config import Settings
from histomed.domain.enums import AppTab
from histomed.domain.models import User
from histomed.engine.gallery import MindMapGallery
from histomed.engine.quiz_engine import QuizEngine, QuizSession
from histomed.engine.student_logs import StudentLogBook
from histomed.storage.local_store import LocalStore

logger = logging.getLogger(__name__)


def build_fetcher(settings: Settings) -> ContentFetcher:
    if not settings.has_gemini:
        logger.warning("[GEMINI] GEMINI_API_KEY ausente: biblioteca, quiz e microscópio indisponíveis")
        return ContentFetcher(None)
    return ContentFetcher(GeminiClient(GeminiConfig(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        vision_model=settings.gemini_vision_model,
    )))


class AppState:
    """
    Estado da aplicação, passado explicitamente para GUI e CLI.
    Ciclo de vida: startup() restaura a sessão salva; login()/logout() são as
    únicas formas de trocar o usuário; logout() desmonta a galeria e o quiz.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[LocalStore] = None,
        fetcher: Optional[ContentFetcher] = None,
        auth_client: Optional[Any] = None,
    ):
        self.settings = settings
        self.store = store or LocalStore(settings.data_dir, settings.storage_quota_bytes)
        self.fetcher = fetcher if fetcher is not None else build_fetcher(settings)
        self.log_book = StudentLogBook(self.store)
        self.auth = AuthController(self.store, auth_client, settings.admin_password, self.log_book)
        self.library = LibraryCatalog(self.fetcher)
        self.quiz_engine = QuizEngine(self.fetcher)

        self.user: Optional[User] = None
        self.active_tab = AppTab.LIBRARY
        self.quiz_session = QuizSession()
        self._gallery: Optional[MindMapGallery] = None

    @staticmethod
    def from_settings(settings: Settings) -> "AppState":
        return AppState(settings, auth_client=create_auth_client(settings))

    def startup(self) -> Optional[User]:
        self.user = self.auth.restore()
        if self.user:
            logger.info("[APP] Sessão restaurada: %s", self.user.email)
        return self.user

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def gallery(self) -> MindMapGallery:
        if self.user is None:
            raise RuntimeError("Galeria requer um usuário autenticado.")
        if self._gallery is None:
            self._gallery = MindMapGallery(self.store, self.user)
        return self._gallery

    def apply_auth(self, outcome: AuthOutcome) -> AuthOutcome:
        if outcome.user is not None:
            self.login(outcome.user)
        return outcome

    def login(self, user: User) -> None:
        self._teardown()
        self.user = user
        self.active_tab = AppTab.LIBRARY

    def logout(self) -> None:
        self.auth.logout()
        self._teardown()
        self.user = None
        self.active_tab = AppTab.LIBRARY

    def shutdown(self) -> None:
        if self._gallery is not None:
            self._gallery.close()
            self._gallery = None

    def can_open(self, tab: AppTab) -> bool:
        if tab == AppTab.STUDENT_LOGS:
            return self.user is not None and self.user.is_admin
        return self.user is not None

    def _teardown(self) -> None:
        self.shutdown()
        self.quiz_engine.reset(self.quiz_session)
