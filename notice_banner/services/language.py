"""Language variant resolution.

A notice may exist in several languages, either as variants of one record
or as sibling records sharing a language group id. :class:`LanguageResolutionEngine`
picks the single variant a viewer sees and fills empty fields from the
fallback language when the policy allows it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..core.models import (
    DEFAULT_LANGUAGE,
    TENANT_DEFAULT,
    CompletenessRule,
    LanguagePolicy,
    LanguageVariant,
    NoticeRecord,
    TranslationStatus,
)
from ..data.models import ResolvedContent

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 10

INHERITABLE_FIELDS = ("title", "description", "link_description")


def id_sort_key(record_id: str) -> tuple[int, str, int, str]:
    """Order ids with a numeric tail (``7``, ``site-7``) numerically, before other ids."""
    prefix, _, tail = record_id.rpartition("-")
    if tail.isdigit():
        return (0, prefix, int(tail), record_id)
    return (1, record_id, 0, record_id)


def merge_siblings(records: Sequence[NoticeRecord]) -> NoticeRecord:
    """Fold sibling translations into one record.

    The sibling with the lowest id supplies every non-language field; the
    variants of all siblings are concatenated in the same id order.
    """
    if not records:
        raise ValueError("merge_siblings() needs at least one record")
    ordered = sorted(records, key=lambda r: id_sort_key(r.id))
    primary = ordered[0]
    if len(ordered) == 1:
        return primary
    variants = [v for record in ordered for v in record.variants]
    return primary.model_copy(update={"variants": variants})


def detect_duplicate_languages(records: Iterable[NoticeRecord]) -> list[str]:
    """Languages that appear more than once across ``records``."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for record in records:
        for variant in record.variants:
            if variant.language in seen and variant.language not in duplicates:
                duplicates.append(variant.language)
            seen.add(variant.language)
    return duplicates


def validate_variants(variants: Sequence[LanguageVariant]) -> list[str]:
    """Return editor-facing problems with ``variants``; empty when valid."""
    if not variants:
        return ["At least one language must be added"]
    errors: list[str] = []
    complete = False
    for variant in variants:
        problems = []
        if len(variant.title.strip()) < MIN_TITLE_LENGTH:
            problems.append(f"{variant.language}: title is required (min {MIN_TITLE_LENGTH} characters)")
        if len(variant.description.strip()) < MIN_DESCRIPTION_LENGTH:
            problems.append(
                f"{variant.language}: description is required (min {MIN_DESCRIPTION_LENGTH} characters)"
            )
        if problems:
            errors.extend(problems)
        else:
            complete = True
    if complete:
        return []
    return errors + ["At least one language must have complete content (title and description)"]


class LanguageResolutionEngine:
    """Resolves a record to one rendering payload under a :class:`LanguagePolicy`."""

    def __init__(self, tenant_default_language: str = DEFAULT_LANGUAGE) -> None:
        self.tenant_default_language = (tenant_default_language or DEFAULT_LANGUAGE).lower()

    def fallback_language(self, policy: LanguagePolicy) -> str:
        if policy.fallback_language == TENANT_DEFAULT:
            return self.tenant_default_language
        return policy.fallback_language

    # ------------------------------------------------------------------
    def resolve(
        self,
        record: NoticeRecord,
        requested_language: str,
        policy: LanguagePolicy,
    ) -> ResolvedContent | None:
        """Return the content ``record`` renders with, or ``None`` if unrenderable."""
        requested = (requested_language or "").strip().lower()
        fallback = self.fallback_language(policy)

        candidates = list(record.variants)
        if policy.require_approved_to_display:
            candidates = [v for v in candidates if v.translation_status is TranslationStatus.APPROVED]

        if not candidates:
            if record.variants:
                logger.debug("Record %s has no approved variant", record.id)
            return self._from_base_fields(record, requested or fallback)

        chosen = (
            _find(candidates, lambda v: v.language == requested)
            or _find(candidates, lambda v: v.available_to_all_languages)
            or _find(candidates, lambda v: v.language == fallback)
            or _find(candidates, lambda v: v.language == self.tenant_default_language)
            or candidates[0]
        )
        content = self._inherit(chosen, candidates, fallback, policy)
        if not content.title.strip() and not content.description.strip():
            return None
        return content

    def _inherit(
        self,
        chosen: LanguageVariant,
        candidates: list[LanguageVariant],
        fallback: str,
        policy: LanguagePolicy,
    ) -> ResolvedContent:
        values = {name: getattr(chosen, name) for name in INHERITABLE_FIELDS}
        source = (
            _find(candidates, lambda v: v.language == fallback)
            or _find(candidates, lambda v: v.available_to_all_languages)
            or candidates[0]
        )
        if source is not chosen:
            for name in INHERITABLE_FIELDS:
                if getattr(policy.inherit_fields, name) and not (values[name] or "").strip():
                    values[name] = getattr(source, name)
        return ResolvedContent(
            language=chosen.language,
            title=values["title"] or "",
            description=values["description"] or "",
            link_description=values["link_description"] or None,
        )

    @staticmethod
    def _from_base_fields(record: NoticeRecord, language: str) -> ResolvedContent | None:
        if not record.title.strip() and not record.description.strip():
            return None
        return ResolvedContent(
            language=language,
            title=record.title,
            description=record.description,
            link_description=record.link_description or None,
        )

    # ------------------------------------------------------------------
    def check_completeness(
        self, variants: Sequence[LanguageVariant], policy: LanguagePolicy
    ) -> bool:
        """Whether ``variants`` satisfy the policy's completeness rule.

        Used by authoring surfaces before a notice is saved; read-time
        resolution never consults it.
        """
        if not variants:
            return False
        rule = policy.completeness_rule
        if rule is CompletenessRule.ALL_LANGUAGES:
            return all(v.is_complete() for v in variants)
        if rule is CompletenessRule.AT_LEAST_ONE:
            return any(v.is_complete() for v in variants)
        fallback = self.fallback_language(policy)
        default = _find(variants, lambda v: v.language == fallback)
        return default is not None and default.is_complete()


def _find(variants, predicate):
    return next((v for v in variants if predicate(v)), None)
