from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from ..core.models import NotificationMode, PermissionLevel, Priority

DIRECTORY_GROUP = "directoryGroup"
SITE_GROUP = "siteGroup"

@dataclass(frozen=True)
class GroupRef:
    id: str
    display_name: str
    kind: str = DIRECTORY_GROUP  # 'directoryGroup' | 'siteGroup'

@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None
    login_name: Optional[str] = None
    display_names: tuple[str, ...] = ()
    groups: frozenset[GroupRef] = frozenset()
    department: Optional[str] = None
    title: Optional[str] = None
    preferred_language: Optional[str] = None

    def groups_of_kind(self, kind: str) -> list[GroupRef]:
        return [g for g in self.groups if g.kind == kind]

    def group_names(self) -> list[str]:
        return [g.display_name for g in self.groups if g.display_name]

@dataclass
class SiteScope:
    site_id: str
    kind: str = "regular"       # regular | hub | home | team | communication
    is_hub: bool = False
    hub_parent_id: Optional[str] = None
    associated_site_ids: list[str] = field(default_factory=list)
    permission_level: PermissionLevel = PermissionLevel.READ

    def is_home(self) -> bool:
        return self.kind == "home"

@dataclass(frozen=True)
class DismissalState:
    dismissed: frozenset[str] = frozenset()  # cleared when the session ends
    hidden: frozenset[str] = frozenset()     # kept until un-hidden

    def suppresses(self, *keys: Optional[str]) -> bool:
        return any(k in self.dismissed or k in self.hidden for k in keys if k)

@dataclass(frozen=True)
class ResolvedContent:
    language: str
    title: str
    description: str
    link_description: Optional[str] = None

@dataclass(frozen=True)
class ResolvedNotice:
    id: str                      # id of the sibling the metadata came from
    key: str                     # language group id, or id when ungrouped
    site_id: str
    priority: Priority
    pinned: bool
    notification_mode: NotificationMode
    content: ResolvedContent
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    created: Optional[datetime] = None
    link_url: Optional[str] = None

    def sort_time(self) -> Optional[datetime]:
        return self.scheduled_start or self.created

@dataclass(frozen=True)
class OrderedNotice:
    notice: ResolvedNotice
    position: int   # 1-based
    total: int

    def label(self) -> str:
        return f"{self.position} of {self.total}"

@dataclass
class ProjectionResult:
    notices: list[OrderedNotice] = field(default_factory=list)
    language: str = ""
    has_error: bool = False
    partial: bool = False
    error_message: Optional[str] = None
    generated_at: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self.notices)

Listener = Callable[[ProjectionResult], None]
