import json
import logging

from notice_banner.config import load_language_policy, load_settings
from notice_banner.core.models import CompletenessRule
from notice_banner.logging_config import setup_logging


def test_load_settings(monkeypatch):
    monkeypatch.setenv("NOTICE_GRAPH_TOKEN", "abc123")
    monkeypatch.setenv("NOTICE_SITE_ID", "site-1")
    monkeypatch.delenv("NOTICE_FETCH_TIMEOUT", raising=False)
    monkeypatch.delenv("NOTICE_LIST_NAME", raising=False)
    monkeypatch.delenv("NOTICE_DATA_PATH", raising=False)
    monkeypatch.delenv("NOTICE_TENANT_LANGUAGE", raising=False)
    monkeypatch.delenv("NOTICE_DISMISSAL_CAP", raising=False)
    s = load_settings()
    assert s.token == "abc123"
    assert s.site_id == "site-1"
    assert s.list_name == "Alerts"
    assert s.data_path == "notice_state.json"
    assert s.tenant_default_language == "en-us"
    assert s.fetch_timeout is None
    assert s.dismissal_cap == 500

    monkeypatch.setenv("NOTICE_FETCH_TIMEOUT", "2.5")
    monkeypatch.setenv("NOTICE_TENANT_LANGUAGE", "DE-DE")
    monkeypatch.setenv("NOTICE_DISMISSAL_CAP", "10")
    s2 = load_settings()
    assert s2.fetch_timeout == 2.5
    assert s2.tenant_default_language == "de-de"
    assert s2.dismissal_cap == 10

    # empty token environment
    monkeypatch.setenv("NOTICE_GRAPH_TOKEN", "")
    assert load_settings().token == ""


def test_load_language_policy(tmp_path):
    assert load_language_policy(None).fallback_language == "en-us"
    assert load_language_policy(str(tmp_path / "missing.json")).fallback_language == "en-us"

    path = tmp_path / "policy.json"
    path.write_text(
        json.dumps(
            {
                "fallbackLanguage": "fr-fr",
                "completenessRule": "atLeastOneComplete",
                "inheritFields": {"title": True},
                "requireApprovedToDisplay": True,
            }
        ),
        encoding="utf-8",
    )
    policy = load_language_policy(str(path))
    assert policy.fallback_language == "fr-fr"
    assert policy.completeness_rule is CompletenessRule.AT_LEAST_ONE
    assert policy.inherit_fields.title is True
    assert policy.require_approved_to_display is True


def test_setup_logging_idempotent():
    logger1 = setup_logging(logging.DEBUG)
    logger2 = setup_logging(logging.DEBUG)
    assert logger1 is logger2
    assert logger1.name == "notice_banner"
    assert len(logger1.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING
