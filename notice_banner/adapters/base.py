"""Base adapter interfaces for the remote services the pipeline consumes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..core.models import (
    NoticeRecord,
    PermissionLevel,
    Profile,
    RootSiteMetadata,
    SiteMetadata,
)
from ..data.models import GroupRef


class IdentityService(ABC):
    """Tenant directory holding the viewer's profile and group memberships."""

    @abstractmethod
    async def get_self(self) -> Profile:
        """Return the signed-in viewer's profile."""

    @abstractmethod
    async def get_memberships(
        self, page_token: str | None = None
    ) -> tuple[list[GroupRef], str | None]:
        """Return one page of directory groups and the next page token."""


class ContentRepository(ABC):
    """Site hierarchy storing the notice lists."""

    @abstractmethod
    async def list_notices_for_sites(self, site_ids: Sequence[str]) -> list[NoticeRecord]:
        """Return the raw notice records stored on ``site_ids``.

        Record ids must be unique across sites; they key deduplication and
        dismissal.
        """

    @abstractmethod
    async def get_site_metadata(self, site_id: str) -> SiteMetadata:
        """Return hub association and template details of ``site_id``."""

    @abstractmethod
    async def get_root_site_metadata(self) -> RootSiteMetadata:
        """Return host and path of the tenant's designated root site."""

    @abstractmethod
    async def get_site_groups(self) -> list[GroupRef]:
        """Return the viewer's site-local group memberships."""

    @abstractmethod
    async def list_hub_sites(self, hub_id: str) -> list[str]:
        """Return the ids of every site associated with ``hub_id``."""

    @abstractmethod
    async def probe_permission(self, site_id: str) -> PermissionLevel:
        """Return the viewer's effective permission on ``site_id``."""
