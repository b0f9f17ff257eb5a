"""Notice pipeline owned by the hosting shell.

The pipeline wires the directory snapshot, the site scope resolver, the
content repository and the dismissal store together. It never raises into
the host: every failure ends up as a logged diagnostic plus flags on the
returned :class:`~notice_banner.data.models.ProjectionResult`.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC
from typing import Callable

from .adapters.base import ContentRepository
from .core.models import DEFAULT_LANGUAGE, LanguagePolicy, NoticeRecord
from .data.models import Identity, Listener, ProjectionResult
from .data.store import DismissalStore
from .services.directory import DirectorySnapshot
from .services.lifecycle import LifecycleStage
from .services.scope import SiteScopeResolver, site_id_variations

logger = logging.getLogger(__name__)

PREFERRED_LANGUAGE_KEY = "PreferredLanguage"


class NoticePipeline:
    """Fetches, aggregates and projects notices for the current viewer."""

    def __init__(
        self,
        directory: DirectorySnapshot,
        scope: SiteScopeResolver,
        repository: ContentRepository,
        store: DismissalStore,
        policy: LanguagePolicy | None = None,
        stage: LifecycleStage | None = None,
        tenant_default_language: str = DEFAULT_LANGUAGE,
        timeout: float | None = None,
    ) -> None:
        self.directory = directory
        self.scope = scope
        self.repository = repository
        self.store = store
        self.policy = policy or LanguagePolicy()
        self.stage = stage or LifecycleStage()
        self.tenant_default_language = tenant_default_language.lower()
        self.timeout = timeout
        self.current: ProjectionResult | None = None
        self._listeners: list[Listener] = []
        self._generation = 0
        # snapshot of the last published refresh, reused by re-projection
        self._records: list[NoticeRecord] | None = None
        self._identity: Identity | None = None
        self._partial = False
        self._all_failed = False
        self._error: str | None = None
        self._language: str | None = None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every published result; returns an unsubscribe hook."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, result: ProjectionResult) -> None:
        self.current = result
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Notice listener failed")

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    async def refresh(
        self,
        all_known_sites: Iterable[str] = (),
        language: str | None = None,
        now: datetime.datetime | None = None,
    ) -> ProjectionResult:
        """Rebuild the notice list from remote state.

        Only the most recent call publishes; a refresh overtaken by a later
        one still returns its result but leaves :attr:`current` alone.
        """
        self._generation += 1
        generation = self._generation
        now = now or datetime.datetime.now(tz=UTC)
        try:
            return await self._refresh(generation, all_known_sites, language, now)
        except Exception as exc:
            logger.exception("Notice refresh failed")
            result = ProjectionResult(
                language=language or self.tenant_default_language,
                has_error=True,
                error_message=str(exc) or exc.__class__.__name__,
                generated_at=now,
            )
            if generation == self._generation:
                self._publish(result)
            return result

    async def _refresh(
        self,
        generation: int,
        all_known_sites: Iterable[str],
        language: str | None,
        now: datetime.datetime,
    ) -> ProjectionResult:
        await self.directory.initialize()
        identity = self.directory.current_identity()
        sites = await self._source_sites(all_known_sites)
        records, failed = await self._fetch(sites)
        records = self._aggregate(records)

        all_failed = bool(sites) and len(failed) == len(sites)
        error = None
        if failed:
            error = "Could not load notices from: " + ", ".join(failed)
        self.store.bind(identity.id if identity else None)
        result = self._project(
            records, identity, language or self.preferred_language(), now,
            partial=bool(failed), error=error, all_failed=all_failed,
        )
        if generation != self._generation:
            logger.debug("Refresh %d superseded by %d; not publishing", generation, self._generation)
            return result

        self._records = records
        self._identity = identity
        self._partial = bool(failed)
        self._all_failed = all_failed
        self._error = error
        self._language = language
        self._publish(result)
        return result

    async def _source_sites(self, all_known_sites: Iterable[str]) -> list[str]:
        try:
            return await self.scope.resolve_alert_source_sites(all_known_sites)
        except Exception:
            logger.warning("Site scope resolution failed; using the current site only", exc_info=True)
            return [self.scope.site_id]

    async def _fetch(self, sites: Sequence[str]) -> tuple[list[NoticeRecord], list[str]]:
        async def fetch_one(site_id: str) -> list[NoticeRecord]:
            call = self.repository.list_notices_for_sites([site_id])
            if self.timeout is None:
                return await call
            return await asyncio.wait_for(call, self.timeout)

        results = await asyncio.gather(*(fetch_one(s) for s in sites), return_exceptions=True)
        records: list[NoticeRecord] = []
        failed: list[str] = []
        for site_id, result in zip(sites, results):
            if isinstance(result, BaseException):
                logger.warning("Could not load notices from site %s: %r", site_id, result)
                failed.append(site_id)
            else:
                records.extend(result)
        return records, failed

    def _aggregate(self, records: list[NoticeRecord]) -> list[NoticeRecord]:
        """Drop repeated ids and records targeted at other sites."""
        here = site_id_variations(self.scope.site_id) | site_id_variations(self.scope.site_url)
        seen: set[str] = set()
        kept: list[NoticeRecord] = []
        duplicates = 0
        for record in records:
            if record.id in seen:
                duplicates += 1
                continue
            seen.add(record.id)
            if record.target_sites and not any(
                site_id_variations(target) & here for target in record.target_sites
            ):
                continue
            kept.append(record)
        if duplicates:
            logger.debug("Removed %d duplicate notices", duplicates)
        return kept

    def _project(
        self,
        records: list[NoticeRecord],
        identity: Identity | None,
        language: str,
        now: datetime.datetime,
        partial: bool = False,
        error: str | None = None,
        all_failed: bool = False,
    ) -> ProjectionResult:
        notices = self.stage.project(records, identity, self.policy, self.store.state(), now, language)
        return ProjectionResult(
            notices=notices,
            language=language,
            has_error=all_failed,
            partial=partial,
            error_message=error,
            generated_at=now,
        )

    def reproject(self, now: datetime.datetime | None = None) -> ProjectionResult | None:
        """Re-run the projection over the last fetched snapshot and publish it."""
        if self._records is None:
            return None
        result = self._project(
            self._records,
            self._identity,
            self._language or self.preferred_language(),
            now or datetime.datetime.now(tz=UTC),
            partial=self._partial,
            error=self._error,
            all_failed=self._all_failed,
        )
        self._publish(result)
        return result

    # ------------------------------------------------------------------
    # Viewer actions
    # ------------------------------------------------------------------
    def _dismissal_key(self, notice_id: str) -> str:
        # dismissing one translation suppresses the whole language group
        for record in self._records or ():
            if record.id == notice_id and record.language_group_id:
                return record.language_group_id
        return notice_id

    def dismiss(self, notice_id: str) -> ProjectionResult | None:
        self.store.dismiss(self._dismissal_key(notice_id))
        return self.reproject()

    def hide_forever(self, notice_id: str) -> ProjectionResult | None:
        self.store.hide(self._dismissal_key(notice_id))
        return self.reproject()

    def unhide(self, notice_id: str) -> ProjectionResult | None:
        if not self.store.unhide(self._dismissal_key(notice_id)):
            return self.current
        return self.reproject()

    def set_policy(self, policy: LanguagePolicy) -> ProjectionResult | None:
        self.policy = policy
        return self.reproject()

    # ------------------------------------------------------------------
    # Language preference
    # ------------------------------------------------------------------
    def preferred_language(self) -> str:
        """Stored preference, then the directory profile, then the tenant default."""
        stored = None
        if self.store.viewer_id is not None:
            try:
                stored = self.store.persistent.get(PREFERRED_LANGUAGE_KEY, user_scoped=True)
            except Exception:
                logger.warning("Could not read the language preference", exc_info=True)
        if isinstance(stored, str) and stored.strip():
            return stored.strip().lower()
        identity = self.directory.current_identity()
        if identity is not None and identity.preferred_language:
            return identity.preferred_language
        return self.tenant_default_language

    def set_preferred_language(self, language: str) -> ProjectionResult | None:
        language = language.strip().lower()
        if self.store.viewer_id is not None:
            try:
                self.store.persistent.set(PREFERRED_LANGUAGE_KEY, language, user_scoped=True)
            except (OSError, TypeError):
                logger.exception("Failed to persist the language preference")
        self._language = language
        return self.reproject()
