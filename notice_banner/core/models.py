"""Data models for notice records, targeting rules and language policy.

The models are implemented using :mod:`pydantic` so that they provide
runtime validation and convenient serialisation to and from dictionaries.
Every model accepts both the snake_case attribute names and the camelCase
keys used by list payloads and policy files.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Sort rank, ``0`` being the most urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class NotificationMode(str, Enum):
    NONE = "none"
    BROWSER = "browser"
    EMAIL = "email"
    BOTH = "both"


class ContentStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pendingReview"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContentType(str, Enum):
    ALERT = "alert"
    TEMPLATE = "template"
    DRAFT = "draft"


class TranslationStatus(str, Enum):
    DRAFT = "draft"
    IN_REVIEW = "inReview"
    APPROVED = "approved"


class Operation(str, Enum):
    ANY_OF = "anyOf"
    ALL_OF = "allOf"
    NONE_OF = "noneOf"


class CompletenessRule(str, Enum):
    ALL_LANGUAGES = "allLanguages"
    AT_LEAST_ONE = "atLeastOne"
    DEFAULT_LANGUAGE_ONLY = "defaultLanguageOnly"


class PermissionLevel(str, Enum):
    NONE = "none"
    READ = "read"
    CONTRIBUTE = "contribute"
    DESIGN = "design"
    FULL_CONTROL = "fullControl"
    OWNER = "owner"

    @property
    def can_write(self) -> bool:
        return self not in (PermissionLevel.NONE, PermissionLevel.READ)


TENANT_DEFAULT = "tenant-default"
DEFAULT_LANGUAGE = "en-us"


# ----------------------------------------------------------------------
# Targeting
# ----------------------------------------------------------------------
class PersonRef(_Model):
    """A user or group entry taken from a people field."""

    id: str = ""
    display_name: str = ""
    email: str | None = None
    login_name: str | None = None
    is_group: bool = False


class PeopleRule(_Model):
    """Targeting by explicit users and groups."""

    kind: Literal["people"] = "people"
    target_users: list[PersonRef] = Field(default_factory=list)
    target_groups: list[PersonRef] = Field(default_factory=list)
    operation: Operation = Operation.ANY_OF


class LegacyRule(_Model):
    """Targeting by audience terms matched against groups, department and title."""

    kind: Literal["legacy"] = "legacy"
    audiences: list[str] = Field(default_factory=list)
    operation: Operation = Operation.ANY_OF


TargetingRule = PeopleRule | LegacyRule


def parse_targeting_rule(data: Any) -> PeopleRule | LegacyRule | None:
    """Build a targeting rule from an untagged payload.

    People fields win over audiences when both are populated. A payload
    carrying neither yields ``None`` (visible to everyone).
    """
    if data is None or isinstance(data, (PeopleRule, LegacyRule)):
        return data
    if not isinstance(data, dict):
        raise TypeError(f"Unsupported targeting rule payload: {type(data).__name__}")
    kind = data.get("kind")
    if kind == "people":
        return PeopleRule.model_validate(data)
    if kind == "legacy":
        return LegacyRule.model_validate(data)

    users = data.get("targetUsers", data.get("target_users")) or []
    groups = data.get("targetGroups", data.get("target_groups")) or []
    operation = data.get("operation", Operation.ANY_OF)
    if users or groups:
        return PeopleRule(target_users=users, target_groups=groups, operation=operation)
    audiences = data.get("audiences") or []
    if audiences:
        return LegacyRule(audiences=audiences, operation=operation)
    return None


# ----------------------------------------------------------------------
# Notices
# ----------------------------------------------------------------------
class LanguageVariant(_Model):
    language: str
    title: str = ""
    description: str = ""
    link_description: str | None = None
    available_to_all_languages: bool = False
    translation_status: TranslationStatus = TranslationStatus.APPROVED

    @field_validator("language")
    @classmethod
    def _lower_language(cls, value: str) -> str:
        return value.strip().lower()

    def is_complete(self) -> bool:
        return bool(self.title.strip()) and bool(self.description.strip())


class NoticeRecord(_Model):
    """One schedulable, targetable notice as stored in a site's list."""

    id: str
    site_id: str = ""
    language_group_id: str | None = None
    base_priority: Priority = Priority.MEDIUM
    pinned: bool = False
    notification_mode: NotificationMode = NotificationMode.NONE
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    content_status: ContentStatus = ContentStatus.APPROVED
    content_type: ContentType = ContentType.ALERT
    targeting_rule: TargetingRule | None = None
    target_sites: list[str] = Field(default_factory=list)
    variants: list[LanguageVariant] = Field(default_factory=list)
    title: str = ""
    description: str = ""
    link_description: str | None = None
    link_url: str | None = None
    created: datetime | None = None

    @field_validator("targeting_rule", mode="before")
    @classmethod
    def _untagged_rule(cls, value: Any) -> Any:
        return parse_targeting_rule(value)

    @property
    def group_key(self) -> str:
        """Identifier shared by all translations of this notice."""
        return self.language_group_id or self.id


class InheritFields(_Model):
    """Field subset that may be inherited from the fallback variant."""

    title: bool = False
    description: bool = False
    link_description: bool = False


_COMPLETENESS_SYNONYMS = {
    "allSelectedComplete": CompletenessRule.ALL_LANGUAGES.value,
    "atLeastOneComplete": CompletenessRule.AT_LEAST_ONE.value,
    "requireDefaultLanguageComplete": CompletenessRule.DEFAULT_LANGUAGE_ONLY.value,
}


class LanguagePolicy(_Model):
    """Global policy governing how language gaps are filled."""

    fallback_language: str = DEFAULT_LANGUAGE
    completeness_rule: CompletenessRule = CompletenessRule.ALL_LANGUAGES
    inherit_fields: InheritFields = Field(default_factory=InheritFields)
    require_approved_to_display: bool = False

    @field_validator("fallback_language", mode="before")
    @classmethod
    def _default_fallback(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return DEFAULT_LANGUAGE
        return value.strip().lower()

    @field_validator("completeness_rule", mode="before")
    @classmethod
    def _known_rule(cls, value: Any) -> Any:
        if isinstance(value, CompletenessRule):
            return value
        if not isinstance(value, str):
            return CompletenessRule.ALL_LANGUAGES
        value = _COMPLETENESS_SYNONYMS.get(value, value)
        if value not in {rule.value for rule in CompletenessRule}:
            return CompletenessRule.ALL_LANGUAGES
        return value


# ----------------------------------------------------------------------
# Remote metadata
# ----------------------------------------------------------------------
class Profile(_Model):
    id: str
    display_name: str = ""
    mail: str | None = None
    user_principal_name: str | None = None
    job_title: str | None = None
    department: str | None = None
    preferred_language: str | None = None


class SiteMetadata(_Model):
    id: str
    web_url: str = ""
    hub_site_id: str | None = None
    template: str | None = None
    permission: PermissionLevel = PermissionLevel.READ


class RootSiteMetadata(_Model):
    host: str
    path: str = "/"
