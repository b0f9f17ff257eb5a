"""Site scope discovery: which sites contribute notices to the current page."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable, Sequence
from urllib.parse import urlsplit

from ..adapters.base import ContentRepository
from ..core.models import PermissionLevel, SiteMetadata
from ..data.models import SiteScope

logger = logging.getLogger(__name__)

ROOT_PATHS = {"", "/", "/sites/root"}

_GUID = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


# ----------------------------------------------------------------------
# Site id helpers
# ----------------------------------------------------------------------
def normalize_guid(value: str) -> str:
    return value.replace("{", "").replace("}", "").strip().lower()


def normalize_site_id(site_id: str) -> str:
    """Return a comparable key for a GUID, composite Graph id or URL."""
    if not site_id:
        return ""
    value = site_id.strip().lower()
    if "," in value:
        # host,siteGuid,webGuid
        parts = value.split(",")
        guid = normalize_guid(parts[1])
        if _GUID.match(guid):
            return guid
    if ":" in value:
        return value
    return normalize_guid(value)


def site_id_variations(value: str) -> set[str]:
    """All spellings under which ``value`` may appear in a target-site list."""
    if not value:
        return set()
    normalized = value.strip().lower()
    variations = {normalized, normalize_site_id(normalized)}
    if "," in normalized:
        host, guid = normalized.split(",")[:2]
        variations.add(normalize_guid(guid))
        if host:
            variations.add(host.strip())
    if "/" in normalized or "." in normalized:
        url = normalized if normalized.startswith("http") else f"https://{normalized}"
        parts = urlsplit(url)
        if parts.hostname:
            path = parts.path.rstrip("/")
            variations.add(parts.hostname)
            variations.add(parts.hostname + path)
    variations.discard("")
    return variations


def _host_and_path(url: str) -> tuple[str, str]:
    parts = urlsplit(url if "://" in url else f"https://{url}")
    return (parts.hostname or "").lower(), parts.path.rstrip("/").lower()


# ----------------------------------------------------------------------
class SiteScopeResolver:
    """Classifies the current site and lists the sites feeding its banner.

    The resolved scope is cached for the page session; :meth:`navigate`
    drops the cache only when the site id actually changes.
    """

    def __init__(self, repository: ContentRepository, site_id: str, site_url: str) -> None:
        self.repository = repository
        self.site_id = site_id
        self.site_url = site_url
        self._scope: SiteScope | None = None
        self._source_sites: list[str] | None = None
        self._cached_for: str | None = None

    def navigate(self, site_id: str, site_url: str) -> bool:
        """Record an in-page navigation. Returns ``True`` if the site changed."""
        if normalize_site_id(site_id) == normalize_site_id(self.site_id):
            self.site_url = site_url or self.site_url
            return False
        logger.debug("Site changed from %s to %s", self.site_id, site_id)
        self.site_id = site_id
        self.site_url = site_url
        self._scope = None
        self._source_sites = None
        self._cached_for = None
        return True

    # ------------------------------------------------------------------
    async def resolve_current_scope(self) -> SiteScope:
        if self._scope is not None and self._cached_for == self.site_id:
            return self._scope
        site_id = self.site_id
        try:
            metadata = await self.repository.get_site_metadata(site_id)
        except Exception:
            logger.warning("Could not load metadata for site %s; using single-site scope", site_id, exc_info=True)
            return SiteScope(site_id=site_id)

        is_hub, hub_parent = self._hub_status(site_id, metadata)
        is_home = await self._is_home_site()
        associated: list[str] = []
        if is_hub:
            associated = await self.resolve_associated_sites(site_id)

        scope = SiteScope(
            site_id=site_id,
            kind=self._kind(metadata, is_hub, is_home),
            is_hub=is_hub,
            hub_parent_id=hub_parent,
            associated_site_ids=associated,
            permission_level=metadata.permission,
        )
        if site_id == self.site_id:
            self._scope = scope
            self._cached_for = site_id
        return scope

    @staticmethod
    def _hub_status(site_id: str, metadata: SiteMetadata) -> tuple[bool, str | None]:
        hub_id = metadata.hub_site_id
        if not hub_id:
            return False, None
        if normalize_site_id(hub_id) == normalize_site_id(site_id):
            return True, None
        return False, hub_id

    async def _is_home_site(self) -> bool:
        host, path = _host_and_path(self.site_url)
        if path not in ROOT_PATHS:
            return False
        try:
            root = await self.repository.get_root_site_metadata()
        except Exception:
            logger.warning("Root site lookup failed; not treating %s as home", self.site_url, exc_info=True)
            return False
        root_host, root_path = _host_and_path(f"{root.host}{root.path or '/'}")
        return host == root_host and path == root_path

    def _kind(self, metadata: SiteMetadata, is_hub: bool, is_home: bool) -> str:
        if is_home:
            return "home"
        if is_hub:
            return "hub"
        if "/teams/" in (metadata.web_url or self.site_url).lower():
            return "team"
        if metadata.template and "communication" in metadata.template.lower():
            return "communication"
        return "regular"

    # ------------------------------------------------------------------
    async def resolve_associated_sites(self, hub_id: str) -> list[str]:
        try:
            sites = await self.repository.list_hub_sites(hub_id)
        except Exception:
            logger.warning("Could not list sites associated with hub %s", hub_id, exc_info=True)
            return []
        return _unique_sites(sites)

    async def resolve_alert_source_sites(self, all_known_sites: Iterable[str] = ()) -> list[str]:
        """Sites whose notices are shown on the current page.

        Home scope uses the caller's super-set of content sites, hub scope
        the hub plus its associated sites, anything else the current site.
        """
        if self._source_sites is not None and self._cached_for == self.site_id:
            return list(self._source_sites)
        scope = await self.resolve_current_scope()
        if scope.is_home():
            sites = _unique_sites([scope.site_id, *all_known_sites])
        elif scope.is_hub:
            sites = _unique_sites([scope.site_id, *scope.associated_site_ids])
        else:
            sites = [scope.site_id]
        if self._scope is scope:
            # only a successfully resolved scope is worth caching
            self._source_sites = sites
            self._cached_for = self.site_id
        return list(sites)

    async def probe_permissions(self, site_ids: Sequence[str]) -> dict[str, PermissionLevel]:
        """Probe every site concurrently; individual failures do not abort the rest."""
        results = await asyncio.gather(
            *(self.repository.probe_permission(s) for s in site_ids),
            return_exceptions=True,
        )
        levels: dict[str, PermissionLevel] = {}
        current = normalize_site_id(self.site_id)
        for site_id, result in zip(site_ids, results):
            if isinstance(result, BaseException):
                logger.warning("Permission probe failed for site %s: %s", site_id, result)
                # the viewer is looking at the current site, so it is readable
                if normalize_site_id(site_id) == current:
                    levels[site_id] = PermissionLevel.READ
                else:
                    levels[site_id] = PermissionLevel.NONE
            else:
                levels[site_id] = result
        return levels


def _unique_sites(site_ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for site_id in site_ids:
        key = normalize_site_id(site_id)
        if key and key not in seen:
            seen.add(key)
            unique.append(site_id)
    return unique
