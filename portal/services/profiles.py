"""
Profile repository gateway.

Reads go through the default database router, which sends them to the
read replica when one is configured; writes always hit the primary.  Reads
may therefore not yet see a row that was just written.
"""
from __future__ import annotations

from typing import Optional

from django.db import transaction

from portal.models import Profile


class ProfileRepository:
    def find_by_email(self, email: str) -> Optional[Profile]:
        return Profile.objects.filter(email__iexact=(email or '').strip()).first()

    def insert(self, *, principal_id: int, email: str, username: str, role: str,
               department_id: Optional[int] = None) -> Profile:
        with transaction.atomic():
            return Profile.objects.create(
                user_id=principal_id,
                email=email,
                username=username,
                role=role,
                department_id=department_id,
            )

    def get_role_row(self, principal_id: int) -> Optional[dict]:
        """``{'username', 'role'}`` for a principal, or None when the row is not visible."""
        return Profile.objects.filter(pk=principal_id).values('username', 'role').first()

    def delete(self, principal_id: int) -> int:
        deleted, _ = Profile.objects.filter(pk=principal_id).delete()
        return deleted
