"""Viewer identity and group memberships, resolved once per session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from ..adapters.base import ContentRepository, IdentityService
from ..core.models import Profile
from ..data.models import GroupRef, Identity

logger = logging.getLogger(__name__)

T = TypeVar("T")

# guards against a directory that keeps handing out next links
MAX_MEMBERSHIP_PAGES = 200


class DirectorySnapshot:
    """Fetches the viewer's profile and memberships from two sources.

    Tenant-directory groups come from the identity service, site-local
    groups from the content repository. Either source may fail; a failure
    is logged and contributes no groups. When the profile itself cannot be
    fetched :meth:`current_identity` stays ``None``, which the targeting
    evaluator treats as "show everything".
    """

    def __init__(
        self,
        identity_service: IdentityService,
        repository: ContentRepository,
        timeout: float | None = None,
    ) -> None:
        self.identity_service = identity_service
        self.repository = repository
        self.timeout = timeout
        self.initialized = False
        self._identity: Identity | None = None
        self._lock = asyncio.Lock()

    async def _call(self, awaitable: Awaitable[T]) -> T:
        if self.timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self.timeout)

    # ------------------------------------------------------------------
    async def initialize(self) -> None:
        """Populate the snapshot. Calls after the first one are no-ops."""
        if self.initialized:
            return
        async with self._lock:
            if self.initialized:
                return
            try:
                profile = await self._call(self.identity_service.get_self())
            except Exception:
                logger.exception("Could not load the viewer profile; targeting disabled")
                self.initialized = True
                return

            directory_groups, site_groups = await asyncio.gather(
                self._directory_groups(), self._site_groups()
            )
            self._identity = self._build_identity(profile, directory_groups + site_groups)
            self.initialized = True
            logger.debug(
                "Directory snapshot ready for %s (%d directory groups, %d site groups)",
                profile.id,
                len(directory_groups),
                len(site_groups),
            )

    async def _directory_groups(self) -> list[GroupRef]:
        groups: list[GroupRef] = []
        token: str | None = None
        try:
            for _ in range(MAX_MEMBERSHIP_PAGES):
                page, token = await self._call(self.identity_service.get_memberships(token))
                groups.extend(page)
                if not token:
                    break
            else:
                logger.warning("Stopped paging memberships after %d pages", MAX_MEMBERSHIP_PAGES)
        except Exception:
            logger.warning("Error fetching directory groups", exc_info=True)
            return []
        return groups

    async def _site_groups(self) -> list[GroupRef]:
        try:
            return list(await self._call(self.repository.get_site_groups()))
        except Exception:
            logger.warning("Error fetching site groups", exc_info=True)
            return []

    @staticmethod
    def _build_identity(profile: Profile, groups: list[GroupRef]) -> Identity:
        names = tuple(n for n in (profile.display_name,) if n)
        return Identity(
            id=profile.id,
            email=profile.mail,
            login_name=profile.user_principal_name,
            display_names=names,
            groups=frozenset(g for g in groups if g.id or g.display_name),
            department=profile.department or None,
            title=profile.job_title or None,
            preferred_language=(profile.preferred_language or "").lower() or None,
        )

    # ------------------------------------------------------------------
    def current_identity(self) -> Identity | None:
        """Return the viewer, or ``None`` if targeting could not be established."""
        return self._identity
