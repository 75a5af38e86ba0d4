# histomed/auth/session.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from histomed import messages
from histomed.config import Settings
from histomed.domain.enums import UserRole
from histomed.domain.models import User
from histomed.engine.student_logs import StudentLogBook
from histomed.errors import ValidationError
from histomed.storage.local_store import SESSION_KEY, LocalStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
DEFAULT_STUDENT_NAME = "Aluno"


@dataclass
class AuthOutcome:
    user: Optional[User] = None
    message: str = ""
    error: str = ""
    switch_to_login: bool = False

    @property
    def ok(self) -> bool:
        return self.user is not None


def create_auth_client(settings: Settings) -> Optional[Any]:
    """
    Client de autenticação do Supabase (pacote: supabase), ou None sem configuração.
    Retorna o objeto `auth` (sign_up / sign_in_with_password).
    """
    if not settings.has_supabase:
        logger.warning("[AUTH] SUPABASE_URL/SUPABASE_ANON_KEY ausentes: login de alunos desativado")
        return None
    from supabase import create_client

    return create_client(settings.supabase_url, settings.supabase_anon_key).auth


def is_valid_email(value: str) -> bool:
    return "@" in value


class AuthController:
    """
    Alunos: credenciais validadas pelo Supabase; aqui só checamos presença,
    formato mínimo de e-mail e tamanho da senha antes de encaminhar.
    Admin: comparação local com a senha configurada, sem chamada externa.
    """

    def __init__(
        self,
        store: LocalStore,
        auth_client: Optional[Any],
        admin_password: str,
        log_book: Optional[StudentLogBook] = None,
    ):
        self.store = store
        self.auth_client = auth_client
        self.admin_password = admin_password
        self.log_book = log_book

    # --- sessão ---
    def restore(self) -> Optional[User]:
        return self.store.load(SESSION_KEY, default=None, decoder=User.from_dict)

    def logout(self) -> None:
        self.store.remove(SESSION_KEY)
        logger.info("[AUTH] Sessão encerrada")

    def _complete_login(self, user: User) -> AuthOutcome:
        result = self.store.save(SESSION_KEY, user, encoder=User.to_dict)
        if not result.ok:
            logger.warning("[AUTH] Sessão não persistida: %s", result.warning)
        if user.role == UserRole.STUDENT and self.log_book is not None:
            self.log_book.record(user)
        logger.info("[AUTH] Login: %s (%s)", user.email, user.role.value)
        return AuthOutcome(user=user)

    # --- aluno ---
    def sign_up(self, name: str, email: str, password: str) -> AuthOutcome:
        try:
            if not name.strip() or not email.strip() or not password.strip():
                raise ValidationError(messages.MISSING_SIGNUP_FIELDS)
            self._validate_email_and_password(email, password)
        except ValidationError as e:
            return AuthOutcome(error=str(e))
        if self.auth_client is None:
            return AuthOutcome(error=messages.AUTH_UNAVAILABLE)

        try:
            res = self.auth_client.sign_up({
                "email": email.strip(),
                "password": password,
                "options": {"data": {"name": name.strip(), "role": "student"}},
            })
        except Exception as e:
            logger.error("[AUTH] Falha no cadastro de %s: %s", email, e)
            return AuthOutcome(error=str(e) or messages.SIGNUP_FAILED)

        user = getattr(res, "user", None)
        session = getattr(res, "session", None)

        # com "Confirm email" ativo no Supabase o aluno só entra depois de confirmar
        if user is not None and session is None:
            return AuthOutcome(message=messages.SIGNUP_CONFIRM_EMAIL, switch_to_login=True)

        user_id = getattr(user, "id", None) if user is not None else None
        if not user_id:
            return AuthOutcome(message=messages.SIGNUP_LOGIN_NEEDED, switch_to_login=True)

        return self._complete_login(User(
            name=name.strip(),
            email=email.strip(),
            role=UserRole.STUDENT,
            id=str(user_id),
            created_at=datetime.now().isoformat(),
        ))

    def sign_in(self, email: str, password: str, name: str = "") -> AuthOutcome:
        try:
            if not email.strip() or not password.strip():
                raise ValidationError(messages.MISSING_LOGIN_FIELDS)
            if not is_valid_email(email):
                raise ValidationError(messages.INVALID_EMAIL)
        except ValidationError as e:
            return AuthOutcome(error=str(e))
        if self.auth_client is None:
            return AuthOutcome(error=messages.AUTH_UNAVAILABLE)

        try:
            res = self.auth_client.sign_in_with_password({"email": email.strip(), "password": password})
        except Exception as e:
            msg = str(e) or messages.LOGIN_FAILED
            logger.error("[AUTH] Falha no login de %s: %s", email, msg)
            low = msg.lower()
            # heurística sobre o texto: o provedor não expõe um código próprio
            if "email" in low and "confirm" in low:
                return AuthOutcome(error=messages.EMAIL_NOT_CONFIRMED)
            return AuthOutcome(error=msg)

        user = getattr(res, "user", None)
        user_id = getattr(user, "id", None) if user is not None else None
        if not user_id:
            return AuthOutcome(error=messages.LOGIN_NO_USER)

        metadata = getattr(user, "user_metadata", None) or {}
        created = getattr(user, "created_at", None)
        return self._complete_login(User(
            name=metadata.get("name") or name.strip() or DEFAULT_STUDENT_NAME,
            email=getattr(user, "email", None) or email.strip(),
            role=UserRole.STUDENT,
            id=str(user_id),
            created_at=_iso(created) if created else datetime.now().isoformat(),
        ))

    # --- admin ---
    def admin_login(self, password: str) -> AuthOutcome:
        if not password.strip():
            return AuthOutcome(error=messages.MISSING_ADMIN_PASSWORD)
        if password != self.admin_password:
            logger.warning("[AUTH] Senha de administrador incorreta")
            return AuthOutcome(error=messages.WRONG_ADMIN_PASSWORD)
        return self._complete_login(User(
            name="Administrador",
            email="admin@local",
            role=UserRole.ADMIN,
            id="admin",
            created_at=datetime.now().isoformat(),
        ))

    def _validate_email_and_password(self, email: str, password: str) -> None:
        if not is_valid_email(email):
            raise ValidationError(messages.INVALID_EMAIL)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(messages.SHORT_PASSWORD)


def _iso(value: Any) -> str:
    return value.isoformat() if isinstance(value, datetime) else str(value)
