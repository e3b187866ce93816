"""
Database models for the hospital administration portal.

Identities (principals) live in ``django.contrib.auth``; everything the
application knows about a user beyond credentials lives in
:class:`Profile`, which shares its primary key with the identity.  The two
are created as a pair by the sign-up flow but not in one transaction.
"""
from __future__ import annotations

from django.conf import settings
from django.db import models


class Department(models.Model):
    """A hospital department; staff, doctors, patients and tests belong to one."""
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    code = models.CharField(max_length=32, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return self.name


class PrincipalMetadata(models.Model):
    """Metadata attached to an identity at sign-up (role, username, pending doctor info).

    Owned by the session store; it exists before the matching Profile does.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, primary_key=True, on_delete=models.CASCADE, related_name='identity_metadata'
    )
    data = models.JSONField(default=dict, blank=True)
    # bumped on every sign-out; JWTs carry the epoch they were issued in
    session_epoch = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"metadata:{self.user_id}"


class Profile(models.Model):
    """Application profile of an identity.

    ``id`` equals the identity id.  The role decides which area of the
    portal the user may enter.
    """
    ROLE_ADMIN = 'admin'
    ROLE_DOCTOR = 'doctor'
    ROLE_PATIENT = 'patient'
    ROLE_REGISTRATION = 'registration'
    ROLE_DEPARTMENT = 'department'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_PATIENT, 'Patient'),
        (ROLE_REGISTRATION, 'Registration'),
        (ROLE_DEPARTMENT, 'Department'),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, primary_key=True, on_delete=models.CASCADE, related_name='profile'
    )
    email = models.EmailField(unique=True)
    username = models.CharField(max_length=150)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, db_index=True)
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='profiles'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class DoctorRecord(models.Model):
    """Doctor-specific data; exactly one per doctor profile."""
    profile = models.OneToOneField(Profile, on_delete=models.CASCADE, related_name='doctor')
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone_number = models.CharField(max_length=32, blank=True)
    specialization = models.CharField(max_length=255, blank=True)
    qualifications = models.TextField(blank=True)
    schedule = models.JSONField(default=dict, blank=True)
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctors'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Dr. {self.name}"


class TestType(models.Model):
    department = models.ForeignKey(Department, on_delete=models.CASCADE, related_name='test_types')
    name = models.CharField(max_length=255)
    has_subtypes = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return self.name


class TestSubtype(models.Model):
    test_type = models.ForeignKey(TestType, on_delete=models.CASCADE, related_name='subtypes')
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.test_type.name} / {self.name}"


class Patient(models.Model):
    SEX_CHOICES = [
        ('Male', 'Male'),
        ('Female', 'Female'),
        ('Other', 'Other'),
    ]
    name = models.CharField(max_length=255)
    age = models.PositiveIntegerField()
    sex = models.CharField(max_length=10, choices=SEX_CHOICES)
    general_registration_number = models.CharField(max_length=64, unique=True)
    department = models.ForeignKey(Department, on_delete=models.PROTECT, related_name='patients')
    registration_date = models.DateField(db_index=True)
    contact_info = models.CharField(max_length=255, blank=True)
    assigned_doctor = models.ForeignKey(
        DoctorRecord, null=True, blank=True, on_delete=models.SET_NULL, related_name='patients'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.general_registration_number})"


class PatientTest(models.Model):
    STATUS_ASSIGNED = 'Assigned'
    STATUS_IN_PROGRESS = 'In Progress'
    STATUS_COMPLETED = 'Completed'
    STATUS_CHOICES = [
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='tests')
    test_type = models.ForeignKey(TestType, on_delete=models.PROTECT, related_name='patient_tests')
    test_subtype = models.ForeignKey(
        TestSubtype, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_tests'
    )
    department = models.ForeignKey(Department, on_delete=models.CASCADE, related_name='patient_tests')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ASSIGNED, db_index=True)
    comments = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.test_type.name} for {self.patient_id} ({self.status})"


class PatientReport(models.Model):
    PRIORITY_URGENT = 'Urgent'
    PRIORITY_NORMAL = 'Not Urgent'
    PRIORITY_CHOICES = [
        (PRIORITY_URGENT, 'Urgent'),
        (PRIORITY_NORMAL, 'Not Urgent'),
    ]
    STATUS_DRAFT = 'Draft'
    STATUS_PUBLISHED = 'Published'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PUBLISHED, 'Published'),
    ]
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='reports')
    title = models.CharField(max_length=255)
    content = models.TextField(blank=True)
    # storage key inside the reports bucket, e.g. "patient-reports/0.42171.pdf"
    file_path = models.CharField(max_length=512, blank=True, null=True)
    priority = models.CharField(max_length=16, choices=PRIORITY_CHOICES, default=PRIORITY_NORMAL)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, on_delete=models.SET_NULL, related_name='reports_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'created_at'], name='report_patient_created_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"


class Notification(models.Model):
    TYPE_URGENT_REPORT = 'urgent_report'
    TYPE_GENERAL = 'general'
    TYPE_CHOICES = [
        (TYPE_URGENT_REPORT, 'urgent_report'),
        (TYPE_GENERAL, 'general'),
    ]
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    title = models.CharField(max_length=255)
    message = models.TextField()
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_GENERAL)
    read = models.BooleanField(default=False)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['user', 'read', 'created_at'], name='notif_user_read_created_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.type}: {self.title} -> {self.user_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
