"""Microsoft Graph adapter implementing the identity and content interfaces.

The adapter uses :mod:`httpx` to talk to Graph (and, for site-local groups,
to the site's REST endpoint) which keeps the implementation dependency
light while remaining fully asynchronous. Each list item becomes a
:class:`~notice_banner.core.models.NoticeRecord` carrying a single language
variant; translations of one notice are sibling items sharing a
``LanguageGroup`` value.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any, TypeVar
from urllib.parse import quote, urlsplit

import httpx

from ..core.models import (
    ContentStatus,
    ContentType,
    LanguageVariant,
    LegacyRule,
    NoticeRecord,
    NotificationMode,
    Operation,
    PeopleRule,
    PermissionLevel,
    PersonRef,
    Priority,
    Profile,
    RootSiteMetadata,
    SiteMetadata,
    TranslationStatus,
    parse_targeting_rule,
)
from ..data.models import DIRECTORY_GROUP, SITE_GROUP, GroupRef
from .base import ContentRepository, IdentityService

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

ALL_LANGUAGES = "all"


class GraphAdapter(IdentityService, ContentRepository):
    """Adapter that sends requests directly to the Microsoft Graph API."""

    api_base = "https://graph.microsoft.com/v1.0"

    def __init__(
        self,
        token: str,
        site_url: str = "",
        list_name: str = "Alerts",
        client: httpx.AsyncClient | None = None,
        sharepoint_token: str | None = None,
    ) -> None:
        """Store authentication ``token`` and optional HTTP ``client``."""
        self.token = token
        self.site_url = site_url.rstrip("/")
        self.list_name = list_name
        self.sharepoint_token = sharepoint_token or token
        self.client = client or httpx.AsyncClient()

    # ------------------------------------------------------------------
    async def _get(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if not url.startswith("http"):
            url = f"{self.api_base}{url}"
        headers = {"Authorization": f"Bearer {self.token}"}
        response = await self.client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    async def _get_all(self, url: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        while next_url:
            data = await self._get(next_url, params)
            items.extend(data.get("value") or [])
            next_url = data.get("@odata.nextLink")
            params = None  # the next link already carries the query
        return items

    # ------------------------------------------------------------------
    # IdentityService
    # ------------------------------------------------------------------
    async def get_self(self) -> Profile:
        data = await self._get(
            "/me",
            {"$select": "id,displayName,mail,jobTitle,department,userPrincipalName,preferredLanguage"},
        )
        return Profile.model_validate(data)

    async def get_memberships(
        self, page_token: str | None = None
    ) -> tuple[list[GroupRef], str | None]:
        """Return one page of ``/me/memberOf``; the token is Graph's next link."""
        if page_token:
            data = await self._get(page_token)
        else:
            data = await self._get("/me/memberOf", {"$select": "id,displayName", "$top": 100})
        groups = [
            GroupRef(id=str(g["id"]), display_name=g.get("displayName") or "", kind=DIRECTORY_GROUP)
            for g in data.get("value") or []
            if g.get("id")
        ]
        return groups, data.get("@odata.nextLink")

    # ------------------------------------------------------------------
    # ContentRepository
    # ------------------------------------------------------------------
    async def get_site_groups(self) -> list[GroupRef]:
        url = f"{self.site_url}/_api/web/currentuser/groups"
        headers = {
            "Authorization": f"Bearer {self.sharepoint_token}",
            "Accept": "application/json;odata=nometadata",
        }
        response = await self.client.get(url, params={"$select": "Id,Title"}, headers=headers)
        response.raise_for_status()
        return [
            GroupRef(id=str(g["Id"]), display_name=g.get("Title") or "", kind=SITE_GROUP)
            for g in response.json().get("value") or []
        ]

    async def get_site_metadata(self, site_id: str) -> SiteMetadata:
        data = await self._get(
            f"/sites/{site_id}", {"$select": "id,webUrl,description,sharepointIds"}
        )
        ids = data.get("sharepointIds") or {}
        return SiteMetadata(
            id=str(data.get("id") or site_id),
            web_url=data.get("webUrl") or "",
            hub_site_id=ids.get("hubSiteId"),
            template=data.get("description"),
            permission=await self.probe_permission(site_id),
        )

    async def get_root_site_metadata(self) -> RootSiteMetadata:
        data = await self._get("/sites/root", {"$select": "webUrl"})
        parts = urlsplit(data.get("webUrl") or "")
        return RootSiteMetadata(host=parts.hostname or "", path=parts.path or "/")

    async def list_hub_sites(self, hub_id: str) -> list[str]:
        sites = await self._get_all(
            "/sites",
            {
                "$filter": f"sharepointIds/hubSiteId eq '{hub_id}'",
                "$select": "id,displayName,webUrl",
                "$top": 100,
            },
        )
        return [str(s["id"]) for s in sites if s.get("id")]

    async def probe_permission(self, site_id: str) -> PermissionLevel:
        """Infer the viewer's permission from which site resources are readable."""
        try:
            await self._get(f"/sites/{site_id}", {"$select": "id"})
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in (403, 404):
                return PermissionLevel.NONE
            raise
        try:
            await self._get(f"/sites/{site_id}/lists", {"$select": "id", "$top": 1})
        except httpx.HTTPStatusError:
            return PermissionLevel.READ
        try:
            await self._get(f"/sites/{site_id}/columns", {"$select": "id", "$top": 1})
        except httpx.HTTPStatusError:
            return PermissionLevel.CONTRIBUTE
        return PermissionLevel.FULL_CONTROL

    async def list_notices_for_sites(self, site_ids: Sequence[str]) -> list[NoticeRecord]:
        records: list[NoticeRecord] = []
        for site_id in site_ids:
            items = await self._get_all(
                f"/sites/{site_id}/lists/{quote(self.list_name)}/items",
                {"expand": "fields", "$top": 999},
            )
            for item in items:
                try:
                    records.append(item_to_record(item, site_id))
                except (ValueError, TypeError, KeyError):
                    logger.warning("Skipping malformed list item %s on site %s", item.get("id"), site_id, exc_info=True)
        return records

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()


# ----------------------------------------------------------------------
# List item mapping
# ----------------------------------------------------------------------
def _choice(enum: type[E], value: Any, default: E) -> E:
    if value is None or value == "":
        return default
    wanted = str(value).strip().lower()
    for member in enum:
        if member.value.lower() == wanted or member.name.replace("_", "").lower() == wanted:
            return member
    return default


def _person(entry: dict[str, Any]) -> PersonRef:
    return PersonRef(
        id=str(entry.get("id") or entry.get("LookupId") or ""),
        display_name=entry.get("displayName") or entry.get("LookupValue") or "",
        email=entry.get("email") or entry.get("Email"),
        login_name=entry.get("loginName"),
        is_group=bool(entry.get("isGroup", False)),
    )


def _target_sites(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(v) for v in value if v]
    text = str(value).strip()
    if text.startswith("["):
        return [str(v) for v in json.loads(text) if v]
    return [part.strip() for part in text.replace(";", ",").split(",") if part.strip()]


def _targeting(fields: dict[str, Any]) -> PeopleRule | LegacyRule | None:
    raw = fields.get("TargetingRule")
    if raw:
        return parse_targeting_rule(json.loads(raw) if isinstance(raw, str) else raw)
    people = [_person(p) for p in fields.get("TargetUsers") or [] if isinstance(p, dict)]
    if not people:
        return None
    return PeopleRule(
        target_users=[p for p in people if not p.is_group],
        target_groups=[p for p in people if p.is_group],
        operation=Operation.ANY_OF,
    )


def item_to_record(item: dict[str, Any], site_id: str) -> NoticeRecord:
    """Map a Graph list item (``expand=fields``) to a :class:`NoticeRecord`."""
    fields = item.get("fields") or {}
    language = (fields.get("TargetLanguage") or ALL_LANGUAGES).strip().lower()
    variant = LanguageVariant(
        language=language,
        title=fields.get("Title") or "",
        description=fields.get("Description") or "",
        link_description=fields.get("LinkDescription") or None,
        available_to_all_languages=bool(fields.get("AvailableForAll")) or language == ALL_LANGUAGES,
        translation_status=_choice(TranslationStatus, fields.get("TranslationStatus"), TranslationStatus.APPROVED),
    )
    return NoticeRecord(
        # list item ids repeat across sites
        id=f"{site_id}-{item['id']}",
        site_id=site_id,
        language_group_id=fields.get("LanguageGroup") or None,
        base_priority=_choice(Priority, fields.get("Priority"), Priority.MEDIUM),
        pinned=bool(fields.get("IsPinned", False)),
        notification_mode=_choice(NotificationMode, fields.get("NotificationType"), NotificationMode.NONE),
        scheduled_start=fields.get("ScheduledStart") or None,
        scheduled_end=fields.get("ScheduledEnd") or None,
        # items created before the approval workflow carry no status
        content_status=_choice(ContentStatus, fields.get("ContentStatus"), ContentStatus.APPROVED),
        content_type=_choice(ContentType, fields.get("ItemType"), ContentType.ALERT),
        targeting_rule=_targeting(fields),
        target_sites=_target_sites(fields.get("TargetSites")),
        variants=[variant],
        link_url=fields.get("LinkUrl") or None,
        created=item.get("createdDateTime") or None,
    )
