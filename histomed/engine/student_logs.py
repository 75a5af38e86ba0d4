# histomed/engine/student_logs.py
from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from histomed.domain.models import StudentLog, User
from histomed.storage.local_store import LOGS_KEY, LocalStore, SaveResult

logger = logging.getLogger(__name__)

CSV_HEADER = ["Data", "Nome", "Email"]
EXPORT_FILENAME = "historico_acessos_histomed.csv"


def decode_logs(data) -> List[StudentLog]:
    return [StudentLog.from_dict(x) for x in data]


def encode_logs(logs: List[StudentLog]) -> list:
    return [x.to_dict() for x in logs]


class StudentLogBook:
    """Registro de acessos dos alunos (só acrescenta; limpa tudo de uma vez)."""

    def __init__(self, store: LocalStore):
        self.store = store

    def _load(self) -> List[StudentLog]:
        return self.store.load(LOGS_KEY, default=[], decoder=decode_logs)

    def record(self, user: User, when: Optional[datetime] = None) -> SaveResult:
        logs = self._load()
        logs.append(StudentLog(name=user.name, email=user.email, date=when or datetime.now()))
        return self.store.save(LOGS_KEY, logs, encoder=encode_logs)

    def entries(self) -> List[StudentLog]:
        """Mais recentes primeiro."""
        return sorted(self._load(), key=lambda x: x.date, reverse=True)

    def search(self, term: str) -> List[StudentLog]:
        t = term.strip().lower()
        logs = self.entries()
        if not t:
            return logs
        return [x for x in logs if t in x.name.lower() or t in x.email.lower()]

    def clear(self) -> None:
        self.store.remove(LOGS_KEY)
        logger.info("[LOGS] Histórico de acessos limpo")

    def to_csv(self, logs: Optional[List[StudentLog]] = None) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for x in self.entries() if logs is None else logs:
            writer.writerow([x.date.strftime("%c"), x.name, x.email])
        return buf.getvalue()

    def export_csv(self, path: Optional[str] = None) -> str:
        target = Path(path) if path else Path.cwd() / EXPORT_FILENAME
        target.write_text(self.to_csv(), encoding="utf-8")
        logger.info("[LOGS] Histórico exportado para %s", target)
        return str(target)
