# histomed/domain/enums.py
from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class AppTab(str, Enum):
    LIBRARY = "LIBRARY"
    QUIZ = "QUIZ"
    MICROSCOPE = "MICROSCOPE"
    MINDMAP = "MINDMAP"
    STUDENT_LOGS = "STUDENT_LOGS"


class QuizPhase(str, Enum):
    SELECTION = "SELECTION"
    LOADING = "LOADING"
    ACTIVE = "ACTIVE"
    RESULT = "RESULT"


class TopicCategory(str, Enum):
    BASIC_TISSUES = "Tecidos Básicos"
    SYSTEMS = "Sistemas"
