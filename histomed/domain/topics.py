# histomed/domain/topics.py
from __future__ import annotations

from typing import Dict, List, Optional

from histomed.domain.enums import TopicCategory
from histomed.domain.models import Topic

_BASIC = TopicCategory.BASIC_TISSUES
_SYSTEMS = TopicCategory.SYSTEMS

# Catálogo fixo, na ordem do sumário
TOPICS: List[Topic] = [
    # Tecidos Básicos
    Topic("epitelial", "Tecido Epitelial", _BASIC),
    Topic("conjuntivo", "Tecido Conjuntivo", _BASIC),
    Topic("adiposo", "Tecido Adiposo", _BASIC),
    Topic("cartilaginoso", "Tecido Cartilaginoso", _BASIC),
    Topic("osseo", "Tecido Ósseo", _BASIC),
    Topic("muscular", "Tecido Muscular", _BASIC),
    Topic("nervoso", "Tecido Nervoso", _BASIC),

    # Sistemas
    Topic("circulatorio", "Sistema Circulatório", _SYSTEMS),
    Topic("linfatico", "Órgãos Linfáticos", _SYSTEMS),
    Topic("digestorio", "Sistema Digestório", _SYSTEMS),
    Topic("glandulas_anexas", "Glândulas Anexas ao Tubo Digestivo", _SYSTEMS),
    Topic("respiratorio", "Sistema Respiratório", _SYSTEMS),
    Topic("urinario", "Sistema Urinário", _SYSTEMS),
    Topic("pele", "Pele e Anexos", _SYSTEMS),
    Topic("endocrinas", "Glândulas Endócrinas", _SYSTEMS),
    Topic("reprodutor_masc", "Aparelho Reprodutor Masculino", _SYSTEMS),
    Topic("reprodutor_fem", "Aparelho Reprodutor Feminino", _SYSTEMS),
    Topic("olho", "Histologia do Olho", _SYSTEMS),
    Topic("ouvido", "Histologia do Ouvido", _SYSTEMS),
]

_BY_ID: Dict[str, Topic] = {t.id: t for t in TOPICS}


def get_topic(topic_id: str) -> Optional[Topic]:
    return _BY_ID.get(topic_id)


def topics_by_category() -> Dict[TopicCategory, List[Topic]]:
    grouped: Dict[TopicCategory, List[Topic]] = {}
    for t in TOPICS:
        grouped.setdefault(t.category, []).append(t)
    return grouped
