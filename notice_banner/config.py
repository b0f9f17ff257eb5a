import json
import os
from dataclasses import dataclass
from pathlib import Path

from .core.models import DEFAULT_LANGUAGE, LanguagePolicy

@dataclass(frozen=True)
class Settings:
    token: str
    site_id: str = ""
    site_url: str = ""
    list_name: str = "Alerts"
    data_path: str = "notice_state.json"
    tenant_default_language: str = DEFAULT_LANGUAGE
    # seconds; None waits for slow directory and site lookups indefinitely
    fetch_timeout: float | None = None
    dismissal_cap: int = 500
    policy_path: str | None = None

def _float_or_none(raw: str) -> float | None:
    raw = raw.strip()
    return float(raw) if raw else None

def load_settings() -> Settings:
    env = os.environ
    return Settings(
        token=env.get("NOTICE_GRAPH_TOKEN", "").strip(),
        site_id=env.get("NOTICE_SITE_ID", "").strip(),
        site_url=env.get("NOTICE_SITE_URL", "").strip(),
        list_name=env.get("NOTICE_LIST_NAME", "").strip() or "Alerts",
        data_path=env.get("NOTICE_DATA_PATH", "").strip() or "notice_state.json",
        tenant_default_language=env.get("NOTICE_TENANT_LANGUAGE", "").strip().lower() or DEFAULT_LANGUAGE,
        fetch_timeout=_float_or_none(env.get("NOTICE_FETCH_TIMEOUT", "")),
        dismissal_cap=int(env.get("NOTICE_DISMISSAL_CAP", "").strip() or 500),
        policy_path=env.get("NOTICE_POLICY_PATH", "").strip() or None,
    )

def load_language_policy(path: str | None) -> LanguagePolicy:
    if not path or not Path(path).exists():
        return LanguagePolicy()
    data = json.loads(Path(path).read_text(encoding="utf-8") or "{}")
    return LanguagePolicy.model_validate(data)
