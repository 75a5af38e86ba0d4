# histomed/storage/local_store.py
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from histomed import messages
from histomed.errors import StorageQuotaError

logger = logging.getLogger(__name__)

SESSION_KEY = "histoMed_user_session"
LOGS_KEY = "histoMed_login_logs"
MINDMAPS_KEY = "histoMed_mindmaps"

Signature = Optional[Tuple[int, int]]
ChangeCallback = Callable[[str], None]


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    warning: str = ""


class LocalStore:
    """
    Armazenamento chave/valor em disco, no papel do localStorage do navegador:
    um arquivo JSON por chave dentro de `directory`, com limite total de bytes.

    load/save nunca lançam exceção para quem chama: dado corrompido vira o
    default, escrita recusada vira um SaveResult com aviso localizado.

    Várias instâncias do app podem compartilhar o mesmo diretório; poll_changes()
    avisa os inscritos quando OUTRO processo alterou uma chave (como o evento
    'storage' entre abas).
    """

    def __init__(self, directory: str, quota_bytes: int = 5 * 1024 * 1024):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.quota_bytes = quota_bytes
        self._lock = threading.RLock()
        self._known: Dict[str, Signature] = {}
        self._subscribers: Dict[str, List[ChangeCallback]] = {}

    # --- leitura / escrita ---
    def load(self, key: str, default: Any = None, decoder: Optional[Callable[[Any], Any]] = None) -> Any:
        path = self._path(key)
        with self._lock:
            self._known[key] = _signature(path)
            try:
                raw = path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return default
            except OSError as e:
                logger.error("[STORE] Falha ao ler %s: %s", key, e)
                return default

        try:
            data = json.loads(raw)
            return decoder(data) if decoder else data
        except Exception as e:
            logger.error("[STORE] Valor corrompido em %s, usando o padrão: %s", key, e)
            return default

    def save(self, key: str, value: Any, encoder: Optional[Callable[[Any], Any]] = None) -> SaveResult:
        try:
            payload = json.dumps(encoder(value) if encoder else value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error("[STORE] Valor não serializável para %s: %s", key, e)
            return SaveResult(ok=False, warning=messages.STORAGE_FULL)

        with self._lock:
            try:
                self._write(key, payload.encode("utf-8"))
            except StorageQuotaError as e:
                logger.error("[STORE] Cota excedida ao salvar %s: %s", key, e)
                return SaveResult(ok=False, warning=messages.STORAGE_FULL)
            except OSError as e:
                logger.error("[STORE] Falha ao gravar %s: %s", key, e)
                return SaveResult(ok=False, warning=messages.STORAGE_FULL)
            self._known[key] = _signature(self._path(key))
        return SaveResult(ok=True)

    def remove(self, key: str) -> None:
        with self._lock:
            try:
                self._path(key).unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error("[STORE] Falha ao remover %s: %s", key, e)
            self._known[key] = None

    def used_bytes(self, exclude: Optional[str] = None) -> int:
        total = 0
        for p in self.directory.glob("*.json"):
            if exclude is not None and p.stem == exclude:
                continue
            try:
                total += p.stat().st_size
            except OSError:
                continue
        return total

    # --- notificação entre instâncias ---
    def subscribe(self, key: str, callback: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.setdefault(key, []).append(callback)
            self._known.setdefault(key, _signature(self._path(key)))

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def poll_changes(self) -> List[str]:
        """Verifica as chaves observadas e notifica mudanças feitas por outro escritor."""
        changed: List[Tuple[str, List[ChangeCallback]]] = []
        with self._lock:
            for key, callbacks in self._subscribers.items():
                if not callbacks:
                    continue
                current = _signature(self._path(key))
                if current != self._known.get(key):
                    self._known[key] = current
                    changed.append((key, list(callbacks)))

        for key, callbacks in changed:
            for cb in callbacks:
                try:
                    cb(key)
                except Exception:
                    logger.exception("[STORE] Callback de mudança falhou para %s", key)
        return [k for k, _ in changed]

    # --- internos ---
    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _write(self, key: str, data: bytes) -> None:
        if self.used_bytes(exclude=key) + len(data) > self.quota_bytes:
            raise StorageQuotaError(f"{key}: {len(data)} bytes excedem a cota de {self.quota_bytes}")

        # grava em arquivo temporário e troca: o valor anterior fica intacto se algo falhar
        fd, tmp = tempfile.mkstemp(dir=str(self.directory), prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, self._path(key))
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise


def _signature(path: Path) -> Signature:
    try:
        st = path.stat()
    except OSError:
        return None
    return st.st_mtime_ns, st.st_size
