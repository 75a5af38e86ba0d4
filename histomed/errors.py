# histomed/errors.py
from __future__ import annotations


class HistoMedError(Exception):
    pass


class ServiceError(HistoMedError):
    """Falha de rede/serviço do Gemini (ou resposta vazia)."""


class MalformedResponseError(ServiceError):
    """JSON ilegível ou fora do formato esperado."""


class StorageQuotaError(HistoMedError):
    pass


class ProcessingError(HistoMedError):
    pass


class ValidationError(HistoMedError):
    """Entrada recusada antes de qualquer chamada externa. A mensagem já é localizada."""


class PermissionDeniedError(HistoMedError):
    pass
