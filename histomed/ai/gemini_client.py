# histomed/ai/gemini_client.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from histomed.errors import MalformedResponseError, ServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeminiConfig:
    api_key: str
    model: str = "gemini-2.5-flash"
    vision_model: str = "gemini-2.5-flash"
    api_version: str = "v1beta"  # system_instruction e response_schema
    max_output_tokens: int = 8192


class GeminiClient:
    """
    Client baseado no SDK google.genai (pacote: google-genai).
    Toda falha do SDK vira ServiceError; JSON ilegível vira MalformedResponseError.
    """

    def __init__(self, cfg: GeminiConfig):
        if not cfg.api_key:
            raise ValueError("GeminiConfig.api_key está vazio.")
        self.cfg = cfg

        from google import genai  # type: ignore
        from google.genai import types  # type: ignore

        self._types = types
        self._client = genai.Client(
            api_key=cfg.api_key,
            http_options=types.HttpOptions(api_version=cfg.api_version),
        )

    def generate_text(
        self,
        contents: Any,
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
        model: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Gera texto do modelo. Com response_schema pede saída application/json.
        """
        types = self._types
        config_kwargs: Dict[str, Any] = {
            "temperature": temperature,
            "max_output_tokens": self.cfg.max_output_tokens,
        }
        if system_instruction:
            config_kwargs["system_instruction"] = system_instruction
        if response_schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = response_schema

        try:
            resp = self._client.models.generate_content(
                model=model or self.cfg.model,
                contents=contents,
                config=types.GenerateContentConfig(**config_kwargs),
            )
        except Exception as e:
            raise ServiceError(f"Falha na chamada ao Gemini: {e}") from e

        text = (resp.text or "").strip()
        if not text:
            raise ServiceError("Resposta vazia do Gemini.")
        return text

    def generate_json(
        self,
        contents: Any,
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
        model: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Pede JSON ao modelo e faz o parse.
        Tolera o JSON "embrulhado" em ```json ... ``` ou com texto em volta.
        """
        raw = self.generate_text(
            contents,
            system_instruction=system_instruction,
            temperature=temperature,
            model=model,
            response_schema=response_schema,
        )
        return parse_json_text(raw)

    def generate_from_image(
        self,
        image: bytes,
        mime_type: str,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.2,
    ) -> str:
        types = self._types
        parts = [
            types.Part.from_bytes(data=image, mime_type=mime_type),
            types.Part.from_text(text=prompt),
        ]
        return self.generate_text(
            parts,
            system_instruction=system_instruction,
            temperature=temperature,
            model=self.cfg.vision_model,
        )


def parse_json_text(raw: str) -> Any:
    json_text = extract_json_text(raw)
    try:
        return json.loads(json_text)
    except ValueError as e:
        raise MalformedResponseError(
            "JSON inválido do Gemini.\n"
            f"RAW (início): {raw[:800]}\n"
            f"JSON_EXTRACT (início): {json_text[:800]}"
        ) from e


def extract_json_text(raw: str) -> str:
    """
    Extrai JSON de:
    - JSON puro (objeto ou lista)
    - bloco ```json ... ```
    - texto extra em volta (do primeiro { ou [ até o último } ou ])
    """
    s = raw.strip()

    # Caso 1: bloco markdown
    if s.startswith("```"):
        s = s.strip("`").strip()
        if s.lower().startswith("json"):
            s = s[4:].strip()

    # Caso 2: já é JSON
    if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
        return s

    # Caso 3: recorta entre o primeiro abre e o último fecha
    starts = [i for i in (s.find("{"), s.find("[")) if i != -1]
    if starts:
        first = min(starts)
        closer = "}" if s[first] == "{" else "]"
        last = s.rfind(closer)
        if last > first:
            return s[first : last + 1]

    # deixa o json.loads falhar com uma mensagem clara
    return s
