from models.recurring_rule import MaterializationPolicy
from utils.app_config import get_db_folder, load_config, load_policy, save_config


def test_missing_or_corrupt_config_is_empty(tmp_path):
    assert load_config(tmp_path / "missing.json") == {}
    broken = tmp_path / "config.json"
    broken.write_text("[1, 2", encoding="utf-8")
    assert load_config(broken) == {}
    broken.write_text("[1, 2]", encoding="utf-8")
    assert load_config(broken) == {}


def test_save_then_load(tmp_path):
    path = tmp_path / "nested" / "config.json"
    save_config({"db_folder": "/data"}, path)
    config = load_config(path)
    assert config == {"db_folder": "/data"}
    assert get_db_folder(config) == "/data"
    assert not path.with_suffix(".tmp").exists()


def test_policy_from_config():
    policy = load_policy({
        "auto_complete_categories": ["Spotify"],
        "materialize_skips": [
            {"category": "Salary", "month": "2026-03"},
            {"category": "Broken"},
            "junk",
        ],
    })
    assert policy.initial_status("Spotify") == "completed"
    assert policy.initial_status("Rent") == "pending"
    assert policy.is_skipped("Salary", "2026-03")
    assert not policy.is_skipped("Salary", "2026-04")
    assert policy.skips == frozenset({("Salary", "2026-03")})


def test_empty_config_gives_default_policy():
    assert load_policy({}) == MaterializationPolicy()
