"""Status, schedule, audience and dismissal gating followed by ordering.

:meth:`LifecycleStage.project` is a pure function of its inputs: every
step filters or transforms the working set produced by the previous one
and nothing is fetched while it runs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum

from ..core.models import ContentStatus, ContentType, LanguagePolicy, NoticeRecord
from ..data.models import DismissalState, Identity, OrderedNotice, ResolvedNotice
from .language import LanguageResolutionEngine, id_sort_key, merge_siblings
from .targeting import AudienceTargetingEvaluator

logger = logging.getLogger(__name__)

AUTO_SAVED_PREFIX = "[auto-saved]"


class SortMode(str, Enum):
    PRIORITY = "priority"
    DATE = "date"
    ALPHABETICAL = "alphabetical"


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def notice_status(record: NoticeRecord, now: datetime) -> str:
    """Classify ``record`` as ``scheduled``, ``active`` or ``expired`` at ``now``."""
    now = _aware(now)
    start = _aware(record.scheduled_start)
    end = _aware(record.scheduled_end)
    if start is not None and now < start:
        return "scheduled"
    if end is not None and now >= end:
        return "expired"
    return "active"


def is_publishable(record: NoticeRecord) -> bool:
    """Approved alerts only: no templates, drafts or auto-saved copies."""
    if record.content_status is not ContentStatus.APPROVED:
        return False
    if record.content_type is not ContentType.ALERT:
        return False
    titles = [record.title, *(v.title for v in record.variants)]
    return not any(t.strip().lower().startswith(AUTO_SAVED_PREFIX) for t in titles if t)


class LifecycleStage:
    """Projects raw records into the ordered list a viewer sees."""

    def __init__(
        self,
        evaluator: AudienceTargetingEvaluator | None = None,
        engine: LanguageResolutionEngine | None = None,
        sort_mode: SortMode = SortMode.PRIORITY,
    ) -> None:
        self.evaluator = evaluator or AudienceTargetingEvaluator()
        self.engine = engine or LanguageResolutionEngine()
        self.sort_mode = sort_mode

    def project(
        self,
        records: Iterable[NoticeRecord],
        identity: Identity | None,
        policy: LanguagePolicy,
        dismissal_state: DismissalState,
        now: datetime,
        language: str,
    ) -> list[OrderedNotice]:
        working = [r for r in records if is_publishable(r)]
        working = [r for r in working if notice_status(r, now) == "active"]
        working = [r for r in working if self.evaluator.is_visible_to(identity, r.targeting_rule)]
        working = [r for r in working if not dismissal_state.suppresses(r.id, r.language_group_id)]
        resolved = self._resolve_groups(working, language, policy)
        ordered = self.order(resolved)
        total = len(ordered)
        return [OrderedNotice(notice=n, position=i, total=total) for i, n in enumerate(ordered, start=1)]

    # ------------------------------------------------------------------
    def _resolve_groups(
        self, records: list[NoticeRecord], language: str, policy: LanguagePolicy
    ) -> list[ResolvedNotice]:
        groups: dict[str, list[NoticeRecord]] = {}
        for record in records:
            groups.setdefault(record.group_key, []).append(record)

        resolved: list[ResolvedNotice] = []
        for key, siblings in groups.items():
            merged = merge_siblings(siblings)
            if len(siblings) > 1 and _diverges(siblings):
                logger.debug("Siblings of language group %s disagree; using record %s", key, merged.id)
            content = self.engine.resolve(merged, language, policy)
            if content is None:
                logger.warning("Dropping notice %s: no renderable content for %s", key, language)
                continue
            resolved.append(
                ResolvedNotice(
                    id=merged.id,
                    key=key,
                    site_id=merged.site_id,
                    priority=merged.base_priority,
                    pinned=merged.pinned,
                    notification_mode=merged.notification_mode,
                    content=content,
                    scheduled_start=_aware(merged.scheduled_start),
                    scheduled_end=_aware(merged.scheduled_end),
                    created=_aware(merged.created),
                    link_url=merged.link_url,
                )
            )
        return resolved

    def order(self, notices: Iterable[ResolvedNotice]) -> list[ResolvedNotice]:
        """Pinned notices first, then by the configured sort mode."""
        # stable sorts applied from the least to the most significant key
        ordered = sorted(notices, key=lambda n: id_sort_key(n.id))
        if self.sort_mode is SortMode.ALPHABETICAL:
            ordered.sort(key=lambda n: n.content.title.lower())
        else:
            ordered.sort(key=_timestamp, reverse=True)
            if self.sort_mode is SortMode.PRIORITY:
                ordered.sort(key=lambda n: n.priority.rank)
        ordered.sort(key=lambda n: not n.pinned)
        return ordered


def _timestamp(notice: ResolvedNotice) -> float:
    moment = notice.sort_time()
    return moment.timestamp() if moment is not None else float("-inf")


def _diverges(siblings: list[NoticeRecord]) -> bool:
    fields = ("base_priority", "pinned", "scheduled_start", "scheduled_end", "notification_mode")
    first = siblings[0]
    return any(getattr(s, f) != getattr(first, f) for s in siblings[1:] for f in fields)
