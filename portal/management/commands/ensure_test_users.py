from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from portal.models import Department, PrincipalMetadata, Profile
from portal.services.doctors import ensure_doctor_record
from portal.services.identity import Principal, identity_key

User = get_user_model()

TEST_PASSWORD = "123456"
TEST_DEPARTMENT = "General Medicine"

TEST_SET = [
    ("admin@example.com", "admin", Profile.ROLE_ADMIN),
    ("department@example.com", "department", Profile.ROLE_DEPARTMENT),
    ("registration@example.com", "registration", Profile.ROLE_REGISTRATION),
    ("doctor@example.com", "doctor", Profile.ROLE_DOCTOR),
]


class Command(BaseCommand):
    help = f"Ensure one test account per role exists with password={TEST_PASSWORD} (idempotent)."

    @transaction.atomic
    def handle(self, *args, **opts):
        dept, _ = Department.objects.get_or_create(name=TEST_DEPARTMENT, defaults={"code": "GEN"})
        for email, username, role in TEST_SET:
            user, created = User.objects.get_or_create(
                username=identity_key(email), defaults={"email": email, "is_active": True},
            )
            user.email = email
            user.is_active = True
            user.set_password(TEST_PASSWORD)
            user.save()

            department = None if role == Profile.ROLE_ADMIN else dept
            metadata = {"role": role, "username": username}
            if role == Profile.ROLE_DOCTOR:
                metadata["pending_doctor_info"] = {"name": "Test Doctor", "department_id": dept.pk}
            PrincipalMetadata.objects.update_or_create(user=user, defaults={"data": metadata})
            Profile.objects.update_or_create(
                user=user, defaults={"email": email, "username": username, "role": role, "department": department},
            )
            if role == Profile.ROLE_DOCTOR:
                ensure_doctor_record(Principal(id=user.pk, email=email, metadata=metadata))
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role}){' created' if created else ''}"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
