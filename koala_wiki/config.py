from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

DEFAULT_API_URL = "https://tsuruma-koala-wiki.shimayuu3412.workers.dev"
CONFIG_PATH = "koala_wiki.json"


@lru_cache(maxsize=1)
def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    load_dotenv()
    p = Path(os.getenv("KOALA_WIKI_CONFIG", path))
    if not p.exists():
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def _get(cfg: Dict[str, Any], *path: str, default: Any = None) -> Any:
    cur: Any = cfg
    for k in path:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _float(*path: str, default: float) -> float:
    try:
        return float(_get(load_config(), *path, default=default))
    except Exception:
        return float(default)


def _int(*path: str, default: int) -> int:
    try:
        return int(_get(load_config(), *path, default=default))
    except Exception:
        return int(default)


def api_base_url() -> str:
    cfg = load_config()
    env = os.getenv("KOALA_WIKI_API_URL")
    if env:
        return env.rstrip("/")
    return str(_get(cfg, "api", "base_url", default=DEFAULT_API_URL) or DEFAULT_API_URL).rstrip("/")


def admin_api_token() -> Optional[str]:
    """
    Token for unattended admin reads (scripts, exports). Interactive use goes
    through the session token instead.
    """
    cfg = load_config()
    v = os.getenv("KOALA_WIKI_ADMIN_TOKEN") or _get(cfg, "api", "admin_token", default=None)
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def request_timeout_s() -> float:
    return _float("api", "timeout_s", default=10.0)


def query_retry() -> int:
    return max(0, _int("queries", "retry", default=2))


def query_retry_delay_s() -> float:
    return max(0.0, _float("queries", "retry_delay_s", default=1.0))


def query_stale_time_s() -> float:
    return _float("queries", "stale_time_s", default=300.0)


def query_cache_time_s() -> float:
    return _float("queries", "cache_time_s", default=300.0)


def toast_duration_s() -> float:
    return _float("ui", "toast_duration_s", default=5.0)


def autosave_debounce_s() -> float:
    return _float("editor", "autosave", "debounce_s", default=2.0)


def autosave_max_interval_s() -> float:
    return _float("editor", "autosave", "max_interval_s", default=5.0)


def recent_search_limit() -> int:
    return max(1, _int("search", "recent_limit", default=10))


def data_dir() -> str:
    cfg = load_config()
    env = os.getenv("KOALA_WIKI_DATA_DIR")
    if env:
        return env
    return str(_get(cfg, "data", "dir", default="~/.koala_wiki") or "~/.koala_wiki")
