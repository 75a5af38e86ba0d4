import csv
import io
from datetime import datetime

from histomed.domain.enums import UserRole
from histomed.domain.models import User
from histomed.engine.student_logs import CSV_HEADER, EXPORT_FILENAME, StudentLogBook


def _user(name, email):
    return User(name=name, email=email, role=UserRole.STUDENT)


def _book(store):
    book = StudentLogBook(store)
    book.record(_user("Ana", "ana@uni.br"), datetime(2024, 3, 1, 9, 0))
    book.record(_user("Bruno", "bruno@uni.br"), datetime(2024, 3, 3, 9, 0))
    book.record(_user("Carla", "carla@med.br"), datetime(2024, 3, 2, 9, 0))
    return book


def test_entries_newest_first(store):
    assert [x.name for x in _book(store).entries()] == ["Bruno", "Carla", "Ana"]


def test_search_by_name_or_email(store):
    book = _book(store)
    assert [x.name for x in book.search("CARLA")] == ["Carla"]
    assert [x.name for x in book.search("uni.br")] == ["Bruno", "Ana"]
    assert len(book.search("  ")) == 3


def test_csv_has_header_and_one_row_per_log(store):
    rows = list(csv.reader(io.StringIO(_book(store).to_csv())))
    assert rows[0] == CSV_HEADER == ["Data", "Nome", "Email"]
    assert [r[1] for r in rows[1:]] == ["Bruno", "Carla", "Ana"]
    assert rows[1][0] == datetime(2024, 3, 3, 9, 0).strftime("%c")


def test_export_writes_file(store, tmp_path, monkeypatch):
    book = _book(store)
    target = tmp_path / "saida.csv"
    assert book.export_csv(str(target)) == str(target)
    assert target.read_text(encoding="utf-8").startswith("Data,Nome,Email\n")

    monkeypatch.chdir(tmp_path)
    assert book.export_csv().endswith(EXPORT_FILENAME)


def test_clear(store):
    book = _book(store)
    book.clear()
    assert book.entries() == []
