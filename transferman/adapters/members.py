"""
Django Membership Backend — roles from the OrganizationMember table.

Default MEMBERSHIP_BACKEND. Projects with their own membership model
implement transferman.protocols.MembershipBackend and point the setting
at it.
"""

from __future__ import annotations

from transferman.protocols.membership import UserSnapshot


class DjangoMembershipBackend:
    """Resolve roles and snapshots from transferman.OrganizationMember."""

    def get_role(self, user, organization) -> str | None:
        from transferman.models import OrganizationMember

        if user is None or not getattr(user, 'is_authenticated', False):
            return None
        return (
            OrganizationMember.objects
            .filter(organization=organization, user=user, is_active=True)
            .values_list('role', flat=True)
            .first()
        )

    def snapshot(self, user, organization=None) -> UserSnapshot:
        if user is None:
            return UserSnapshot(user_id=None, username='system')

        role = self.get_role(user, organization) if organization is not None else None
        full_name = ''
        if hasattr(user, 'get_full_name'):
            full_name = user.get_full_name()
        return UserSnapshot(
            user_id=user.pk,
            username=user.get_username(),
            full_name=full_name,
            email=getattr(user, 'email', None) or None,
            role=role,
        )
