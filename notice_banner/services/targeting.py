"""Audience targeting evaluation.

Targeting here filters content by relevance; it is not an access-control
boundary. When the viewer's identity is unknown every notice is visible,
and exclusion is deferred until the directory snapshot resolves.
"""

from __future__ import annotations

from ..core.models import LegacyRule, Operation, PeopleRule, PersonRef
from ..data.models import DIRECTORY_GROUP, SITE_GROUP, Identity


class AudienceTargetingEvaluator:
    """Decides notice visibility from resident directory data only."""

    def is_visible_to(
        self, identity: Identity | None, rule: PeopleRule | LegacyRule | None
    ) -> bool:
        if rule is None or identity is None:
            return True
        if isinstance(rule, PeopleRule):
            return self._evaluate_people(identity, rule)
        if isinstance(rule, LegacyRule):
            return self._evaluate_legacy(identity, rule)
        raise TypeError(f"Unknown targeting rule: {type(rule).__name__}")

    # ------------------------------------------------------------------
    # People-field rules
    # ------------------------------------------------------------------
    def _evaluate_people(self, identity: Identity, rule: PeopleRule) -> bool:
        user_match = any(self.is_same_person(identity, p) for p in rule.target_users)
        group_match = any(self.is_member_of(identity, g) for g in rule.target_groups)

        if rule.operation is Operation.ANY_OF:
            return user_match or group_match
        if rule.operation is Operation.ALL_OF:
            if rule.target_users and rule.target_groups:
                return user_match and group_match
            return user_match if rule.target_users else group_match
        # noneOf
        return not user_match and not group_match

    @staticmethod
    def is_same_person(identity: Identity, person: PersonRef) -> bool:
        if person.id and person.id == identity.id:
            return True
        if person.email and identity.email:
            if person.email.lower() == identity.email.lower():
                return True
        if person.login_name:
            login = person.login_name.lower()
            if identity.id and identity.id.lower() in login:
                return True
            if identity.login_name and identity.login_name.lower() in login:
                return True
        return False

    @staticmethod
    def is_member_of(identity: Identity, group: PersonRef) -> bool:
        if not identity.groups:
            return False
        group_id = (group.id or "").strip()
        if group_id.isdigit():
            site_ids = {g.id for g in identity.groups_of_kind(SITE_GROUP)}
            if group_id in site_ids or str(int(group_id)) in site_ids:
                return True
        if group_id:
            directory_ids = {g.id.lower() for g in identity.groups_of_kind(DIRECTORY_GROUP)}
            if group_id.lower() in directory_ids:
                return True
        # last resort: display names across both kinds
        name = (group.display_name or "").strip().lower()
        return bool(name) and name in {n.lower() for n in identity.group_names()}

    # ------------------------------------------------------------------
    # Legacy audience rules
    # ------------------------------------------------------------------
    def _evaluate_legacy(self, identity: Identity, rule: LegacyRule) -> bool:
        attributes = {
            value.strip().lower()
            for value in (*identity.group_names(), identity.department, identity.title)
            if isinstance(value, str) and value.strip()
        }
        audiences = [a.strip().lower() for a in rule.audiences if a and a.strip()]

        if rule.operation is Operation.ANY_OF:
            return any(a in attributes for a in audiences)
        if rule.operation is Operation.ALL_OF:
            return all(a in attributes for a in audiences)
        return not any(a in attributes for a in audiences)
