import json
import random

from tabsnap.models import LiveTabView, SnapshotRecord
from tabsnap.recency_store import RecencyStore
from tabsnap.storage import JsonFileBackend, MemoryBackend


def record(tab_id, last_active, title=None, screenshot=None):
    return SnapshotRecord(
        tab_id=tab_id, last_active=last_active, title=title, screenshot=screenshot
    )


def test_put_replaces_existing_record():
    store = RecencyStore(cap=10)
    store.put(7, record(7, 100, title="first"))
    store.put(7, record(7, 200, title="second"))

    records = store.records()
    assert len(records) == 1
    assert records[0] == record(7, 200, title="second")


def test_put_keeps_last_write_even_if_older_by_default():
    store = RecencyStore(cap=10)
    store.put(7, record(7, 500, title="newer"))
    store.put(7, record(7, 100, title="stale"))

    assert store.get(7).title == "stale"


def test_compare_last_active_keeps_newer_record():
    store = RecencyStore(cap=10, compare_last_active=True)
    assert store.put(7, record(7, 500, title="newer"))
    assert not store.put(7, record(7, 100, title="stale"))

    assert store.get(7).title == "newer"


def test_eviction_keeps_cap_most_recent():
    store = RecencyStore(cap=10)
    for tab_id in range(1, 13):
        store.put(tab_id, record(tab_id, tab_id * 10))

    kept = sorted(r.tab_id for r in store.records())
    assert kept == list(range(3, 13))


def test_eviction_invariant_for_random_put_sequences():
    rng = random.Random(1234)
    store = RecencyStore(cap=10)
    for _ in range(300):
        tab_id = rng.randint(1, 25)
        last_active = rng.randint(1, 1_000_000)
        before = {r.tab_id: r.last_active for r in store.records()}
        before[tab_id] = last_active

        store.put(tab_id, record(tab_id, last_active))

        stored = {r.tab_id: r.last_active for r in store.records()}
        assert len(stored) <= 10
        expected = sorted(before.values(), reverse=True)[:10]
        assert sorted(stored.values(), reverse=True) == expected


def test_eviction_ignores_malformed_items():
    backend = MemoryBackend()
    backend.set("tab-x", {"id": "not-a-number"})
    backend.set("junk", "plain string")
    store = RecencyStore(backend, cap=2)

    for tab_id in (1, 2, 3):
        store.put(tab_id, record(tab_id, tab_id))

    assert [r.tab_id for r in store.records()] == [3, 2]
    assert "junk" in backend.get_all()


def test_merged_view_filters_closed_tabs_without_deleting_them():
    store = RecencyStore(cap=10)
    store.put(42, record(42, 1000, title="Example", screenshot="data:image/jpeg;base64,AA=="))

    assert store.get_all_merged_with_live([]) == []
    assert store.get(42) is not None


def test_merged_view_prefers_live_metadata():
    store = RecencyStore(cap=10)
    store.put(1, SnapshotRecord(1, 100, title="old title", favicon_url="old.ico"))
    live = [
        LiveTabView(
            tab_id=1,
            window_id=3,
            title="new title",
            favicon_url="new.ico",
            url="https://a.test",
        )
    ]

    merged = store.get_all_merged_with_live(live)

    assert len(merged) == 1
    entry = merged[0]
    assert entry.title == "new title"
    assert entry.favicon_url == "new.ico"
    assert entry.url == "https://a.test"
    assert entry.last_active == 100


def test_merged_view_keeps_stored_title_when_live_has_none():
    store = RecencyStore(cap=10)
    store.put(1, SnapshotRecord(1, 100, title="stored", favicon_url="stored.ico"))

    merged = store.get_all_merged_with_live([LiveTabView(tab_id=1)])

    assert merged[0].title == "stored"
    assert merged[0].favicon_url == "stored.ico"


def test_clear_removes_everything():
    store = RecencyStore(cap=10)
    store.put(1, record(1, 1))
    store.clear()
    assert store.records() == []


def test_json_backend_persists_under_tab_keys(tmp_path):
    path = tmp_path / "snapshots.json"
    store = RecencyStore(JsonFileBackend(str(path)), cap=10)
    store.put(42, record(42, 1234, title="Example"))

    on_disk = json.loads(path.read_text())
    assert list(on_disk) == ["tab-42"]
    assert on_disk["tab-42"]["lastActive"] == 1234

    reopened = RecencyStore(JsonFileBackend(str(path)), cap=10)
    assert reopened.get(42).title == "Example"


def test_json_backend_survives_corrupt_file(tmp_path):
    path = tmp_path / "snapshots.json"
    path.write_text("{not json")

    store = RecencyStore(JsonFileBackend(str(path)), cap=10)
    assert store.records() == []
    store.put(1, record(1, 1))
    assert store.get(1) is not None
