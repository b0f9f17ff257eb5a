from notice_banner.core.models import (
    CompletenessRule,
    InheritFields,
    LanguagePolicy,
    LanguageVariant,
    NoticeRecord,
    TranslationStatus,
)
from notice_banner.services.language import (
    LanguageResolutionEngine,
    detect_duplicate_languages,
    id_sort_key,
    merge_siblings,
    validate_variants,
)

engine = LanguageResolutionEngine()


def variant(language, title="Title", description="Description text", **kwargs):
    return LanguageVariant(language=language, title=title, description=description, **kwargs)


def record(*variants, **kwargs):
    return NoticeRecord(id=kwargs.pop("id", "1"), variants=list(variants), **kwargs)


def test_exact_match_wins():
    content = engine.resolve(record(variant("en-us", "Hello"), variant("fr-fr", "Bonjour")), "FR-FR", LanguagePolicy())
    assert content.language == "fr-fr"
    assert content.title == "Bonjour"


def test_available_to_all_beats_fallback():
    r = record(variant("en-us", "Hello"), variant("all", "Everyone", available_to_all_languages=True))
    assert engine.resolve(r, "de-de", LanguagePolicy()).title == "Everyone"


def test_fallback_then_tenant_default_then_first():
    r = record(variant("en-us", "Hello"), variant("fr-fr", "Bonjour"))
    assert engine.resolve(r, "de-de", LanguagePolicy(fallback_language="fr-fr")).title == "Bonjour"

    french_tenant = LanguageResolutionEngine("fr-fr")
    assert french_tenant.resolve(r, "de-de", LanguagePolicy(fallback_language="es-es")).title == "Bonjour"

    only = record(variant("it-it", "Ciao"))
    assert engine.resolve(only, "de-de", LanguagePolicy()).title == "Ciao"


def test_tenant_default_fallback_token():
    tenant = LanguageResolutionEngine("fr-fr")
    policy = LanguagePolicy(fallback_language="tenant-default")
    assert tenant.fallback_language(policy) == "fr-fr"
    r = record(variant("en-us", "Hello"), variant("fr-fr", "Bonjour"))
    assert tenant.resolve(r, "de-de", policy).title == "Bonjour"


def test_approval_filter_drops_unapproved_variants():
    r = record(
        variant("fr-fr", "Bonjour", translation_status=TranslationStatus.IN_REVIEW),
        variant("en-us", "Hello"),
    )
    policy = LanguagePolicy(require_approved_to_display=True)
    content = engine.resolve(r, "fr-fr", policy)
    assert content.language == "en-us"
    assert engine.resolve(r, "fr-fr", LanguagePolicy()).language == "fr-fr"


def test_no_approved_variant_uses_base_fields():
    r = record(
        variant("fr-fr", translation_status=TranslationStatus.DRAFT),
        title="Base title",
        description="Base body",
    )
    content = engine.resolve(r, "fr-fr", LanguagePolicy(require_approved_to_display=True))
    assert content.title == "Base title"
    assert content.language == "fr-fr"

    bare = record(variant("fr-fr", translation_status=TranslationStatus.DRAFT))
    assert engine.resolve(bare, "fr-fr", LanguagePolicy(require_approved_to_display=True)) is None


def test_inheritance_fills_only_empty_enabled_fields():
    r = record(
        variant("en-us", "Hello", "English body", link_description="Read more"),
        variant("fr-fr", "", "Corps"),
    )
    policy = LanguagePolicy(inherit_fields=InheritFields(title=True))
    content = engine.resolve(r, "fr-fr", policy)
    assert content.language == "fr-fr"
    assert content.title == "Hello"
    assert content.description == "Corps"
    assert content.link_description is None

    without = engine.resolve(r, "fr-fr", LanguagePolicy())
    assert without.title == ""


def test_blank_content_is_unrenderable():
    r = record(variant("fr-fr", "", ""))
    assert engine.resolve(r, "fr-fr", LanguagePolicy()) is None


def test_check_completeness():
    complete = variant("en-us")
    partial = variant("fr-fr", "Titre", "")
    both = [complete, partial]
    assert not engine.check_completeness(both, LanguagePolicy())
    assert engine.check_completeness(both, LanguagePolicy(completeness_rule=CompletenessRule.AT_LEAST_ONE))
    assert engine.check_completeness(
        both, LanguagePolicy(completeness_rule=CompletenessRule.DEFAULT_LANGUAGE_ONLY)
    )
    assert not engine.check_completeness(
        both,
        LanguagePolicy(completeness_rule=CompletenessRule.DEFAULT_LANGUAGE_ONLY, fallback_language="fr-fr"),
    )
    assert not engine.check_completeness([], LanguagePolicy())


def test_merge_siblings_lowest_id_wins():
    a = record(variant("en-us", "Hello"), id="10", pinned=True, language_group_id="grp")
    b = record(variant("fr-fr", "Bonjour"), id="9", pinned=False, language_group_id="grp")
    merged = merge_siblings([a, b])
    assert merged.id == "9"
    assert merged.pinned is False
    assert [v.language for v in merged.variants] == ["fr-fr", "en-us"]
    # inputs are left untouched
    assert len(b.variants) == 1


def test_id_sort_key_orders_numerically():
    assert sorted(["10", "9", "abc", "2"], key=id_sort_key) == ["2", "9", "10", "abc"]
    assert sorted(["s1-10", "s1-9", "s0-12"], key=id_sort_key) == ["s0-12", "s1-9", "s1-10"]


def test_detect_duplicate_languages():
    a = record(variant("en-us"), id="1")
    b = record(variant("EN-US"), variant("fr-fr"), id="2")
    assert detect_duplicate_languages([a, b]) == ["en-us"]


def test_validate_variants():
    assert validate_variants([]) == ["At least one language must be added"]
    assert validate_variants([variant("en-us", "Hello", "Long enough body"), variant("fr-fr", "", "")]) == []
    errors = validate_variants([variant("en-us", "Hi", "short")])
    assert "en-us: title is required (min 3 characters)" in errors
    assert errors[-1].startswith("At least one language must have complete content")
