"""Pre-DB bootstrap configuration. No imports from the database or services layers.

Stores user preferences that must be known before opening the DB (e.g. db_folder)
and the materialization policy tables (auto-complete categories, skip list).
Config lives in ~/.financeflow/config.json to avoid a bootstrapping problem.
"""
import json
import os
from pathlib import Path

from models.recurring_rule import MaterializationPolicy
from utils.constants import AUTO_COMPLETE_CATEGORIES, MATERIALIZE_SKIPS

CONFIG_DIR = Path.home() / ".financeflow"
CONFIG_FILE = CONFIG_DIR / "config.json"


def load_config(path: Path | None = None) -> dict:
    """Returns {} on a missing or corrupt file. Never raises."""
    try:
        with open(path or CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(config: dict, path: Path | None = None) -> None:
    """Creates the config dir if needed; atomic write via .tmp + os.replace()."""
    target = Path(path or CONFIG_FILE)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        os.replace(tmp, target)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def get_db_folder(config: dict | None = None) -> str | None:
    """Return config["db_folder"] or None if not set."""
    if config is None:
        config = load_config()
    return config.get("db_folder")


def load_policy(config: dict | None = None) -> MaterializationPolicy:
    """Build the MaterializationPolicy from built-in defaults plus config overrides.

    config["auto_complete_categories"] is a list of category names.
    config["materialize_skips"] is a list of {"category": ..., "month": "YYYY-MM"}.
    Malformed skip entries are ignored.
    """
    if config is None:
        config = load_config()

    auto_complete = set(AUTO_COMPLETE_CATEGORIES)
    auto_complete.update(
        str(c) for c in config.get("auto_complete_categories", []) if c
    )

    skips = set(MATERIALIZE_SKIPS)
    for entry in config.get("materialize_skips", []):
        if not isinstance(entry, dict):
            continue
        category = entry.get("category")
        month = entry.get("month")
        if category and month:
            skips.add((str(category), str(month)))

    return MaterializationPolicy(
        auto_complete_categories=frozenset(auto_complete),
        skips=frozenset(skips),
    )
