from __future__ import annotations

import asyncio
from pathlib import Path

from .adapters.graph import GraphAdapter
from .config import Settings, load_language_policy, load_settings
from .core.storage import JSONStorage, SessionStorage
from .data.store import DismissalStore
from .logging_config import setup_logging
from .pipeline import NoticePipeline
from .services.directory import DirectorySnapshot
from .services.language import LanguageResolutionEngine
from .services.lifecycle import LifecycleStage
from .services.scope import SiteScopeResolver


def build_pipeline(settings: Settings, adapter: GraphAdapter) -> NoticePipeline:
    """Wire a :class:`NoticePipeline` from ``settings``.

    The caller owns ``adapter`` and closes it when done.
    """
    store = DismissalStore(
        SessionStorage(), JSONStorage(Path(settings.data_path)), cap=settings.dismissal_cap
    )
    engine = LanguageResolutionEngine(settings.tenant_default_language)
    return NoticePipeline(
        directory=DirectorySnapshot(adapter, adapter, timeout=settings.fetch_timeout),
        scope=SiteScopeResolver(adapter, settings.site_id, settings.site_url),
        repository=adapter,
        store=store,
        policy=load_language_policy(settings.policy_path),
        stage=LifecycleStage(engine=engine),
        tenant_default_language=settings.tenant_default_language,
        timeout=settings.fetch_timeout,
    )


def main() -> int:
    log = setup_logging()
    settings = load_settings()
    if not settings.token or not settings.site_id:
        log.error(
            "NOTICE_GRAPH_TOKEN and NOTICE_SITE_ID must be set. "
            "Export them in your environment before running."
        )
        return 2
    adapter = GraphAdapter(settings.token, site_url=settings.site_url, list_name=settings.list_name)
    pipeline = build_pipeline(settings, adapter)

    async def runner() -> int:
        try:
            result = await pipeline.refresh()
        finally:
            await adapter.close()
        for item in result.notices:
            notice = item.notice
            log.info("[%s] %s: %s", item.label(), notice.priority.value, notice.content.title)
        if result.partial:
            log.warning(result.error_message)
        return 1 if result.has_error else 0

    return asyncio.run(runner())


if __name__ == "__main__":
    raise SystemExit(main())
