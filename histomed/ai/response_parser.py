# histomed/ai/response_parser.py
from __future__ import annotations

from typing import Any, Dict, List

from histomed.ai.prompts import OPTIONS_PER_QUESTION
from histomed.domain.models import MicroscopeAnalysis, QuizQuestion
from histomed.errors import MalformedResponseError


def parse_quiz_questions(data: Any) -> List[QuizQuestion]:
    """
    Valida a lista de questões devolvida pelo modelo.
    Nada é "consertado": qualquer item fora do formato invalida a resposta inteira.
    """
    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]
    if not isinstance(data, list):
        raise MalformedResponseError("Esperada uma lista de questões.")

    questions = []
    for pos, item in enumerate(data):
        if not isinstance(item, dict):
            raise MalformedResponseError(f"Questão {pos} não é um objeto.")
        questions.append(_parse_question(item, pos))
    return questions


def _parse_question(item: Dict[str, Any], pos: int) -> QuizQuestion:
    options = _require_str_list(item, "options")
    if len(options) != OPTIONS_PER_QUESTION:
        raise MalformedResponseError(f"Questão {pos}: esperadas {OPTIONS_PER_QUESTION} opções, vieram {len(options)}.")

    answer = _require_int(item, "correctAnswer")
    if not 0 <= answer < OPTIONS_PER_QUESTION:
        raise MalformedResponseError(f"Questão {pos}: correctAnswer fora de [0,3]: {answer}")

    raw_id = item.get("id", pos + 1)
    qid = raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else pos + 1

    return QuizQuestion(
        id=qid,
        question=_require_str(item, "question"),
        options=options,
        correct_answer=answer,
        explanation=_require_str(item, "explanation", allow_empty=True),
    )


def parse_microscope_analysis(data: Any) -> MicroscopeAnalysis:
    if not isinstance(data, dict):
        raise MalformedResponseError("Esperado um objeto de análise.")
    return MicroscopeAnalysis(
        tissue_type=_require_str(data, "tissueType"),
        features=_require_str_list(data, "features"),
        diagnosis=_require_str(data, "diagnosis"),
        description=_require_str(data, "description"),
    )


# --- Helpers ---
def _require_str(data: Dict[str, Any], key: str, allow_empty: bool = False) -> str:
    v = data.get(key)
    if not isinstance(v, str):
        raise MalformedResponseError(f"Campo ausente ou inválido: {key}")
    v = v.strip()
    if not v and not allow_empty:
        raise MalformedResponseError(f"Campo vazio: {key}")
    return v


def _require_int(data: Dict[str, Any], key: str) -> int:
    v = data.get(key)
    if isinstance(v, bool) or not isinstance(v, int):
        raise MalformedResponseError(f"Campo inteiro ausente ou inválido: {key}")
    return v


def _require_str_list(data: Dict[str, Any], key: str) -> List[str]:
    v = data.get(key)
    if not isinstance(v, list) or not all(isinstance(x, str) for x in v):
        raise MalformedResponseError(f"Lista de textos ausente ou inválida: {key}")
    return [x.strip() for x in v]
