# histomed/engine/gallery.py
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from histomed import messages
from histomed.domain.models import MindMapItem, User
from histomed.errors import PermissionDeniedError
from histomed.imaging.normalizer import normalize_image, title_from_filename, validate_upload
from histomed.storage.local_store import MINDMAPS_KEY, LocalStore

logger = logging.getLogger(__name__)


def decode_mindmaps(data) -> List[MindMapItem]:
    return [MindMapItem.from_dict(x) for x in data]


def encode_mindmaps(items: List[MindMapItem]) -> list:
    return [m.to_dict() for m in items]


class MindMapGallery:
    """
    Coleção de mapas mentais em memória, espelhada no LocalStore.

    - Outra instância gravou a chave: recarrega e sobrescreve (sem merge).
    - Só o ADMIN altera; a coleção inteira é regravada a cada mudança.
    - Se a gravação falhar, a memória mantém a alteração e `warning` explica.
    """

    def __init__(self, store: LocalStore, user: User, on_change: Optional[Callable[[], None]] = None):
        self.store = store
        self.user = user
        self.on_change = on_change
        self.warning = ""
        self._items: List[MindMapItem] = self._load()
        self._unsubscribe = store.subscribe(MINDMAPS_KEY, self._on_storage_change)

    @property
    def items(self) -> List[MindMapItem]:
        return list(self._items)

    @property
    def can_edit(self) -> bool:
        return self.user.is_admin

    def get(self, item_id: str) -> Optional[MindMapItem]:
        for m in self._items:
            if m.id == item_id:
                return m
        return None

    def add(self, title: str, image_bytes: bytes, filename: str, mime_type: Optional[str] = None) -> MindMapItem:
        """
        Valida e normaliza a imagem antes de qualquer mudança de estado:
        ValidationError/ProcessingError propagam e nada é adicionado.
        """
        self._require_admin()
        validate_upload(filename, mime_type)
        return self.add_normalized(title, normalize_image(image_bytes), filename)

    def add_normalized(self, title: str, url: str, filename: str) -> MindMapItem:
        """Para quem já normalizou a imagem fora da thread da interface."""
        self._require_admin()
        item = MindMapItem(
            id=self._new_id(),
            title=title.strip() or title_from_filename(filename),
            url=url,
            date_added=datetime.now(),
        )
        self._items.insert(0, item)
        logger.info("[GALLERY] Mapa adicionado: %s (%s)", item.title, item.id)
        self._persist()
        return item

    def delete(self, item_id: str, confirmed: bool) -> bool:
        self._require_admin()
        if not confirmed:
            return False
        before = len(self._items)
        self._items = [m for m in self._items if m.id != item_id]
        if len(self._items) == before:
            return False
        # liberando espaço: o aviso anterior não vale mais
        self.warning = ""
        logger.info("[GALLERY] Mapa removido: %s", item_id)
        self._persist()
        return True

    def reload(self) -> None:
        self._items = self._load()
        if self.on_change:
            self.on_change()

    def close(self) -> None:
        self._unsubscribe()

    # --- internos ---
    def _require_admin(self) -> None:
        if not self.user.is_admin:
            raise PermissionDeniedError(messages.ADMIN_ONLY)

    def _new_id(self) -> str:
        # timestamp em ms, como Date.now(); garante unicidade dentro da coleção
        candidate = int(time.time() * 1000)
        existing = {m.id for m in self._items}
        while str(candidate) in existing:
            candidate += 1
        return str(candidate)

    def _load(self) -> List[MindMapItem]:
        return self.store.load(MINDMAPS_KEY, default=[], decoder=decode_mindmaps)

    def _persist(self) -> None:
        result = self.store.save(MINDMAPS_KEY, self._items, encoder=encode_mindmaps)
        self.warning = "" if result.ok else result.warning

    def _on_storage_change(self, key: str) -> None:
        logger.info("[GALLERY] %s alterado por outra instância, recarregando", key)
        self.reload()
