import io
import json
from types import SimpleNamespace

import pytest
from PIL import Image

from histomed.ai.content_fetchers import ContentFetcher
from histomed.config import Settings
from histomed.domain.enums import UserRole
from histomed.domain.models import QuizQuestion, User
from histomed.storage.local_store import LocalStore


class FakeGeminiClient:
    """Mesma interface do GeminiClient; devolve respostas pré-definidas."""

    def __init__(self, text="", json_data=None, image_text="", error=None):
        self.text = text
        self.json_data = json_data
        self.image_text = image_text
        self.error = error
        self.calls = []

    def generate_text(self, contents, system_instruction=None, temperature=0.7, model=None, response_schema=None):
        self.calls.append(("text", contents, system_instruction, temperature))
        if self.error:
            raise self.error
        return self.text

    def generate_json(self, contents, system_instruction=None, temperature=0.7, model=None, response_schema=None):
        self.calls.append(("json", contents, system_instruction, temperature, response_schema))
        if self.error:
            raise self.error
        return self.json_data

    def generate_from_image(self, image, mime_type, prompt, system_instruction=None, temperature=0.2):
        self.calls.append(("image", image, mime_type, prompt, temperature))
        if self.error:
            raise self.error
        return self.image_text


class FakeAuthClient:
    """Imita supabase.auth: sign_up / sign_in_with_password."""

    def __init__(self, sign_up_result=None, sign_in_result=None, error=None):
        self.sign_up_result = sign_up_result
        self.sign_in_result = sign_in_result
        self.error = error
        self.calls = []

    def sign_up(self, credentials):
        self.calls.append(("sign_up", credentials))
        if self.error:
            raise self.error
        return self.sign_up_result

    def sign_in_with_password(self, credentials):
        self.calls.append(("sign_in", credentials))
        if self.error:
            raise self.error
        return self.sign_in_result


def auth_response(user_id="u-1", email="ana@uni.br", name="Ana", session=True):
    user = SimpleNamespace(id=user_id, email=email, user_metadata={"name": name} if name else {},
                           created_at="2024-03-01T10:00:00+00:00")
    return SimpleNamespace(user=user, session=SimpleNamespace(access_token="tok") if session else None)


def make_question(qid=1, correct=0):
    return QuizQuestion(
        id=qid,
        question=f"Pergunta {qid}?",
        options=["A", "B", "C", "D"],
        correct_answer=correct,
        explanation=f"Explicação {qid}",
    )


def quiz_payload(n=10):
    return [
        {
            "id": i + 1,
            "question": f"Qual a característica {i + 1} do epitélio?",
            "options": ["Avascular", "Vascularizado", "Rico em matriz", "Sem lâmina basal"],
            "correctAnswer": 0,
            "explanation": "O epitélio é avascular.",
        }
        for i in range(n)
    ]


def image_bytes(size=(64, 32), mode="RGB", fmt="PNG", color=(200, 30, 30)):
    if mode == "RGBA" and len(color) == 3:
        color = color + (128,)
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def store(tmp_path):
    return LocalStore(str(tmp_path / "data"))


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=str(tmp_path / "data"), admin_password="segredo")


@pytest.fixture
def admin():
    return User(name="Administrador", email="admin@local", role=UserRole.ADMIN, id="admin")


@pytest.fixture
def student():
    return User(name="Ana", email="ana@uni.br", role=UserRole.STUDENT, id="u-1")


@pytest.fixture
def quiz_json():
    return json.dumps(quiz_payload())


@pytest.fixture
def fake_gemini():
    return FakeGeminiClient()


@pytest.fixture
def fetcher(fake_gemini):
    return ContentFetcher(fake_gemini)
