# histomed/domain/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Tuple

from histomed.domain.enums import TopicCategory, UserRole


def encode_datetime(value: datetime) -> str:
    return value.isoformat()


def decode_datetime(value: Any) -> datetime:
    """
    Aceita ISO-8601 (inclusive o 'Z' do toISOString do JavaScript).
    Datas com fuso viram horário local ingênuo, para poderem ser ordenadas juntas.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    else:
        raise ValueError(f"Data inválida: {value!r}")
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


@dataclass
class User:
    name: str
    email: str
    role: UserRole
    id: str = ""
    created_at: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "createdAt": self.created_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "User":
        return User(
            name=str(data["name"]),
            email=str(data["email"]),
            role=UserRole(data["role"]),
            id=str(data.get("id", "")),
            created_at=str(data.get("createdAt", "")),
        )


@dataclass(frozen=True)
class Topic:
    id: str
    title: str
    category: TopicCategory


@dataclass
class QuizQuestion:
    id: int
    question: str
    options: List[str]
    correct_answer: int  # índice 0-3
    explanation: str


@dataclass
class QuizResult:
    score: int
    total: int
    history: List[Tuple[int, bool]] = field(default_factory=list)

    pass_mark: int = 7

    @property
    def passed(self) -> bool:
        return self.score >= self.pass_mark


@dataclass(frozen=True)
class MindMapItem:
    id: str
    title: str
    url: str  # data URL da imagem comprimida
    date_added: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "dateAdded": encode_datetime(self.date_added),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MindMapItem":
        return MindMapItem(
            id=str(data["id"]),
            title=str(data["title"]),
            url=str(data["url"]),
            date_added=decode_datetime(data["dateAdded"]),
        )


@dataclass(frozen=True)
class StudentLog:
    name: str
    email: str
    date: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email, "date": encode_datetime(self.date)}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "StudentLog":
        return StudentLog(name=str(data["name"]), email=str(data["email"]), date=decode_datetime(data["date"]))


@dataclass
class MicroscopeAnalysis:
    tissue_type: str
    features: List[str]
    diagnosis: str
    description: str
