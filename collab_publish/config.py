"""Configuration stored as a JSON blob in a small SQLite database."""

from __future__ import annotations

import json
import os
import shlex
import shutil
import sqlite3
import subprocess
import tempfile
from typing import Callable, List, Optional

from .errors import ConfigError

_CONFIG_KEY = "root"


def default_config_path() -> str:
    return os.path.expanduser("~/.config/collab_publish/collab.sqlite")


def default_config() -> dict:
    return {
        "privkey": "",
        "relays": [
            "wss://relay.damus.io",
            "wss://nos.lol",
            "wss://relay.primal.net",
        ],
        "relay_hints": 2,
        "default_target_kind": 30023,
        "query_timeout": 10,
        "signer_timeout": 30,
    }


def _resolve_db_path(config_path: Optional[str]) -> str:
    if config_path:
        return os.path.expanduser(config_path)
    return default_config_path()


def _db_connect(config_path: Optional[str]) -> sqlite3.Connection:
    db_path = _resolve_db_path(config_path)
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("create table if not exists config (key text primary key, value text not null)")
    return conn


def _load_json(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError:
        return {}


def _write_json(path: str, data: dict) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, ensure_ascii=True)
        handle.write("\n")


def load_stored_config(config_path: Optional[str]) -> dict:
    conn = _db_connect(config_path)
    try:
        row = conn.execute("select value from config where key = ?", (_CONFIG_KEY,)).fetchone()
    finally:
        conn.close()
    if not row:
        return {}
    try:
        data = json.loads(row["value"])
    except (json.JSONDecodeError, TypeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(config_path: Optional[str]) -> dict:
    """Stored values layered over ``default_config()``."""
    config = default_config()
    config.update(load_stored_config(config_path))
    return config


def write_config(config_path: Optional[str], data: dict) -> None:
    conn = _db_connect(config_path)
    payload = json.dumps(data, indent=2, ensure_ascii=True)
    try:
        conn.execute(
            """
            insert into config (key, value) values (?, ?)
            on conflict(key) do update set value = excluded.value
            """,
            (_CONFIG_KEY, payload),
        )
        conn.commit()
    finally:
        conn.close()


def config_exists(config_path: Optional[str]) -> bool:
    conn = _db_connect(config_path)
    try:
        row = conn.execute("select 1 from config where key = ? limit 1", (_CONFIG_KEY,)).fetchone()
    finally:
        conn.close()
    return row is not None


def open_in_editor(path: str) -> None:
    raw_editor = os.environ.get("EDITOR") or os.environ.get("VISUAL")
    if raw_editor:
        editor_cmd = shlex.split(raw_editor)
    else:
        editor_cmd = []
        for candidate in ("nano", "vi"):
            if shutil.which(candidate):
                editor_cmd = [candidate]
                break
    if not editor_cmd:
        raise ConfigError("No editor found. Set $EDITOR or $VISUAL.")
    try:
        subprocess.run(editor_cmd + [path], check=True)
    except FileNotFoundError as exc:
        raise ConfigError(f"Editor not found: {editor_cmd[0]}") from exc


def edit_config(config_path: Optional[str], open_editor: Callable[[str], None] = open_in_editor) -> dict:
    config = load_stored_config(config_path) or default_config()
    with tempfile.NamedTemporaryFile(prefix="collab-config-", suffix=".json", delete=False) as handle:
        temp_path = handle.name
    _write_json(temp_path, config)
    try:
        open_editor(temp_path)
        edited = _load_json(temp_path)
    except json.JSONDecodeError:
        raise ConfigError("Edited config is not valid JSON.") from None
    finally:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
    if not isinstance(edited, dict):
        raise ConfigError("Edited config must be a JSON object.")
    write_config(config_path, edited)
    return edited


def merge_optional(value: Optional[str], fallback: Optional[str]) -> Optional[str]:
    return value if value is not None else fallback


def resolve_relays(relays: Optional[List[str]], config: dict) -> List[str]:
    if relays:
        return relays
    if isinstance(config, dict):
        configured = config.get("relays") or []
        return [relay for relay in configured if isinstance(relay, str) and relay.strip()]
    return []


def config_number(config: dict, key: str, fallback: float) -> float:
    value = config.get(key, fallback) if isinstance(config, dict) else fallback
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback
