import json

from piggybank.persistent_cache import DEFAULT_CACHE, SOURCE_DATABASE, SOURCE_SHEET, load_cache, save_cache


def test_missing_file_gives_defaults(tmp_path):
    assert load_cache(tmp_path / "absent.json") == DEFAULT_CACHE


def test_save_and_load_preferences(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    save_cache({"user_id": "u1", "source_mode": SOURCE_SHEET, "date_range": "week", "junk": 1}, path)

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert "junk" not in stored

    cache = load_cache(path)
    assert cache["user_id"] == "u1"
    assert cache["source_mode"] == SOURCE_SHEET
    assert cache["date_range"] == "week"
    assert cache["sort_option"] == DEFAULT_CACHE["sort_option"]


def test_corrupt_or_unexpected_files(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_cache(path) == DEFAULT_CACHE

    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert load_cache(path) == DEFAULT_CACHE

    path.write_text(json.dumps({"source_mode": "Database (all history)"}), encoding="utf-8")
    assert load_cache(path)["source_mode"] == SOURCE_DATABASE
