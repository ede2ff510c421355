"""Pre-DB bootstrap configuration. Zero imports from the services layer.

Stores the settings that must be known before opening the DB (db_path,
log_level, busy_timeout). Config lives in ~/.bizledger/config.json unless
BIZLEDGER_CONFIG points elsewhere.
"""
import json
import os
from pathlib import Path

from utils.constants import DB_BUSY_TIMEOUT, DB_FILE, DEFAULT_LOG_LEVEL

CONFIG_DIR = Path.home() / ".bizledger"
CONFIG_FILE = CONFIG_DIR / "config.json"
CONFIG_ENV_VAR = "BIZLEDGER_CONFIG"


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else CONFIG_FILE


def load_config() -> dict:
    """Returns {} on missing or corrupt file; never raises."""
    try:
        with open(config_path(), "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(config: dict) -> None:
    """Creates the config dir if needed; atomic write via .tmp + os.replace()."""
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def get_db_path() -> str:
    return load_config().get("db_path") or DB_FILE


def set_db_path(path: str | None) -> None:
    config = load_config()
    if path is None:
        config.pop("db_path", None)
    else:
        config["db_path"] = path
    save_config(config)


def get_log_level() -> str:
    return str(load_config().get("log_level") or DEFAULT_LOG_LEVEL).upper()


def get_busy_timeout() -> float:
    try:
        return float(load_config().get("busy_timeout", DB_BUSY_TIMEOUT))
    except (TypeError, ValueError):
        return DB_BUSY_TIMEOUT
