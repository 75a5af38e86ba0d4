# histomed/ai/content_fetchers.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from histomed import messages
from histomed.ai import prompts
from histomed.ai.gemini_client import GeminiClient, parse_json_text
from histomed.ai.response_parser import parse_microscope_analysis, parse_quiz_questions
from histomed.domain.models import MicroscopeAnalysis, QuizQuestion, Topic
from histomed.errors import ServiceError
from histomed.imaging.normalizer import split_data_url

logger = logging.getLogger(__name__)


class ContentFetcher:
    """
    As três chamadas ao Gemini do app. Nenhuma delas propaga erro:
    em caso de falha devolvem um valor seguro e registram o motivo no log.
    Sem client (chave de API ausente) toda chamada se comporta como falha de serviço.
    """

    def __init__(self, client: Optional[GeminiClient]):
        self.client = client

    def _require_client(self) -> GeminiClient:
        if self.client is None:
            raise ServiceError("GEMINI_API_KEY não configurada.")
        return self.client

    def fetch_library_content(self, topic_title: str) -> str:
        try:
            text = self._require_client().generate_text(
                prompts.library_prompt(topic_title),
                system_instruction=prompts.SYSTEM_INSTRUCTION_LIBRARY,
                temperature=prompts.LIBRARY_TEMPERATURE,
            )
        except Exception as e:
            logger.error("[GEMINI] Erro ao buscar conteúdo da biblioteca (%s): %s", topic_title, e)
            return messages.LIBRARY_UNAVAILABLE
        return text

    def fetch_quiz_questions(self, topic_title: str) -> List[QuizQuestion]:
        try:
            data = self._require_client().generate_json(
                prompts.quiz_prompt(topic_title),
                system_instruction=prompts.SYSTEM_INSTRUCTION_QUIZ,
                temperature=prompts.QUIZ_TEMPERATURE,
                response_schema=prompts.QUIZ_RESPONSE_SCHEMA,
            )
            return parse_quiz_questions(data)
        except Exception as e:
            logger.error("[GEMINI] Erro ao gerar quiz (%s): %s", topic_title, e)
            return []

    def analyze_image(self, image: Union[str, bytes], mime_type: str = "image/jpeg") -> Optional[MicroscopeAnalysis]:
        """
        `image` pode ser um data URL (como sai do normalizador) ou os bytes crus.
        """
        try:
            if isinstance(image, str):
                mime_type, image = split_data_url(image)
            # o modelo de imagem não aceita response_mime_type: o parse é manual
            raw = self._require_client().generate_from_image(
                image,
                mime_type,
                prompts.MICROSCOPE_PROMPT,
                system_instruction=prompts.SYSTEM_INSTRUCTION_MICROSCOPE,
                temperature=prompts.MICROSCOPE_TEMPERATURE,
            )
            return parse_microscope_analysis(parse_json_text(raw))
        except Exception as e:
            logger.error("[GEMINI] Erro ao analisar imagem: %s", e)
            return None


class LibraryCatalog:
    """Resumos por tópico, guardados em memória durante a sessão."""

    def __init__(self, fetcher: ContentFetcher):
        self.fetcher = fetcher
        self._cache: Dict[str, str] = {}

    def cached(self, topic: Topic) -> Optional[str]:
        return self._cache.get(topic.id)

    def content_for(self, topic: Topic) -> str:
        hit = self._cache.get(topic.id)
        if hit is not None:
            return hit
        text = self.fetcher.fetch_library_content(topic.title)
        # falhas não entram no cache: selecionar de novo tenta outra vez
        if text != messages.LIBRARY_UNAVAILABLE:
            self._cache[topic.id] = text
        return text
