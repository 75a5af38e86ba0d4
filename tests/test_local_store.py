from datetime import datetime

from histomed import messages
from histomed.domain.models import MindMapItem
from histomed.engine.gallery import decode_mindmaps, encode_mindmaps
from histomed.storage.local_store import MINDMAPS_KEY, SESSION_KEY, LocalStore


def test_missing_key_returns_default(store):
    assert store.load("nada", default=[]) == []


def test_mindmap_collection_round_trip(store):
    items = [
        MindMapItem(id="1700000000001", title="Epitélio", url="data:image/jpeg;base64,AAAA",
                    date_added=datetime(2024, 5, 1, 14, 30, 15, 123000)),
        MindMapItem(id="1700000000000", title="Osso", url="data:image/jpeg;base64,BBBB",
                    date_added=datetime(2024, 4, 2, 8, 0)),
    ]
    assert store.save(MINDMAPS_KEY, items, encoder=encode_mindmaps).ok

    loaded = store.load(MINDMAPS_KEY, default=[], decoder=decode_mindmaps)
    assert [m.id for m in loaded] == [m.id for m in items]
    assert [m.title for m in loaded] == [m.title for m in items]
    assert [m.url for m in loaded] == [m.url for m in items]
    assert all(isinstance(m.date_added, datetime) for m in loaded)
    assert loaded[0].date_added == items[0].date_added


def test_iso_dates_with_z_suffix_are_decoded(store):
    store.save(MINDMAPS_KEY, [{"id": "1", "title": "t", "url": "u", "dateAdded": "2024-05-01T12:00:00.000Z"}])
    loaded = store.load(MINDMAPS_KEY, default=[], decoder=decode_mindmaps)
    assert isinstance(loaded[0].date_added, datetime)
    assert loaded[0].date_added.tzinfo is None


def test_corrupted_value_falls_back_to_default(store):
    (store.directory / f"{SESSION_KEY}.json").write_text("{nao é json", encoding="utf-8")
    assert store.load(SESSION_KEY, default=None) is None


def test_decoder_error_falls_back_to_default(store):
    store.save(MINDMAPS_KEY, [{"id": "1"}])
    assert store.load(MINDMAPS_KEY, default=[], decoder=decode_mindmaps) == []


def test_quota_exceeded_keeps_previous_value(tmp_path):
    store = LocalStore(str(tmp_path), quota_bytes=200)
    assert store.save("k", "pequeno").ok

    result = store.save("k", "x" * 500)
    assert not result.ok
    assert result.warning == messages.STORAGE_FULL
    assert store.load("k") == "pequeno"


def test_quota_counts_other_keys(tmp_path):
    store = LocalStore(str(tmp_path), quota_bytes=300)
    assert store.save("a", "x" * 200).ok
    assert not store.save("b", "y" * 200).ok
    # regravar a própria chave não conta o tamanho antigo
    assert store.save("a", "z" * 250).ok


def test_remove(store):
    store.save(SESSION_KEY, {"x": 1})
    store.remove(SESSION_KEY)
    store.remove(SESSION_KEY)
    assert store.load(SESSION_KEY) is None


def test_change_from_other_instance_notifies(tmp_path):
    a = LocalStore(str(tmp_path))
    b = LocalStore(str(tmp_path))
    seen = []
    a.subscribe(MINDMAPS_KEY, seen.append)

    assert a.poll_changes() == []
    b.save(MINDMAPS_KEY, [1, 2, 3])

    assert a.poll_changes() == [MINDMAPS_KEY]
    assert seen == [MINDMAPS_KEY]
    assert a.poll_changes() == []


def test_own_writes_do_not_notify(store):
    seen = []
    store.subscribe(MINDMAPS_KEY, seen.append)
    store.save(MINDMAPS_KEY, ["meu"])
    assert store.poll_changes() == []
    assert seen == []


def test_unsubscribe_stops_notifications(tmp_path):
    a = LocalStore(str(tmp_path))
    b = LocalStore(str(tmp_path))
    seen = []
    unsubscribe = a.subscribe(MINDMAPS_KEY, seen.append)
    unsubscribe()

    b.save(MINDMAPS_KEY, [1])
    a.poll_changes()
    assert seen == []
