import json

from data_store import DataStore
from models import Package


def test_missing_file_starts_empty(tmp_path):
    store = DataStore(tmp_path / "data.json")

    assert store.favorites() == []
    assert store.recent_searches() == []
    assert store.cached_installed() == []
    assert store.newest_cache_timestamp() is None


def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "data.json"
    path.write_text("{not json", encoding="utf-8")

    store = DataStore(path)

    assert store.favorites() == []


def test_toggle_favorite_persists(tmp_path):
    path = tmp_path / "data.json"
    store = DataStore(path)

    assert store.toggle_favorite("yay")
    assert store.toggle_favorite("bash")
    assert store.favorites() == ["bash", "yay"]
    assert not store.toggle_favorite("yay")
    assert not store.is_favorite("yay")

    assert DataStore(path).favorites() == ["bash"]


def test_record_search_keeps_recent_unique_and_counts(tmp_path):
    store = DataStore(tmp_path / "data.json")

    for query in ["Firefox", "vim", "x", "firefox ", "emacs"]:
        store.record_search(query)

    assert store.recent_searches() == ["emacs", "firefox", "vim"]
    assert store.trending_searches() == ["firefox", "emacs", "vim"]
    assert store.recent_searches(limit=1) == ["emacs"]


def test_recent_searches_are_capped(tmp_path):
    store = DataStore(tmp_path / "data.json")
    for i in range(20):
        store.record_search(f"query{i}")

    assert len(store.recent_searches()) == 12
    assert store.recent_searches()[0] == "query19"


def test_cached_lists_round_trip(tmp_path):
    path = tmp_path / "data.json"
    store = DataStore(path)
    store.set_cached_installed([Package("bash", "5.2-1", "GNU shell", "repo", "5.2-1")])
    store.set_cached_updates([Package("yay", "12.3.1-1", repository="aur", installed_version="12.3.0-1")])

    reloaded = DataStore(path)

    assert reloaded.cached_installed()[0].description == "GNU shell"
    update = reloaded.cached_updates()[0]
    assert update.is_aur and update.has_update
    assert reloaded.cached_installed_at() == store.cached_installed_at()
    assert reloaded.newest_cache_timestamp() == max(store.cached_installed_at(), store.cached_updates_at())


def test_saved_file_uses_documented_keys(tmp_path):
    path = tmp_path / "data.json"
    DataStore(path).toggle_favorite("yay")

    data = json.loads(path.read_text(encoding="utf-8"))

    assert set(data) == {
        "favorites",
        "recent_searches",
        "search_counts",
        "cached_installed",
        "cached_updates",
        "cached_installed_at",
        "cached_updates_at",
    }


def test_unknown_package_fields_are_dropped(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({
        "cached_installed": [{"name": "bash", "version": "1", "color": "red"}, "junk"],
    }), encoding="utf-8")

    store = DataStore(path)

    assert [p.name for p in store.cached_installed()] == ["bash"]
