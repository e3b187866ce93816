"""
Django admin registrations for the portal models.

Useful during development to inspect rows the auth flows create and to
repair half-provisioned accounts by hand.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    Department,
    DoctorRecord,
    Notification,
    Patient,
    PatientReport,
    PatientTest,
    PrincipalMetadata,
    Profile,
    TestSubtype,
    TestType,
)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'created_at')
    search_fields = ('name', 'code')


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'email', 'username', 'role', 'department', 'created_at')
    list_filter = ('role', 'department')
    search_fields = ('email', 'username')


@admin.register(PrincipalMetadata)
class PrincipalMetadataAdmin(admin.ModelAdmin):
    list_display = ('user', 'created_at')
    search_fields = ('user__email',)


@admin.register(DoctorRecord)
class DoctorRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'email', 'phone_number', 'department', 'created_at')
    list_filter = ('department',)
    search_fields = ('name', 'email', 'phone_number')


class TestSubtypeInline(admin.TabularInline):
    model = TestSubtype
    extra = 0


@admin.register(TestType)
class TestTypeAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'department', 'has_subtypes')
    list_filter = ('department',)
    inlines = [TestSubtypeInline]


class PatientTestInline(admin.TabularInline):
    model = PatientTest
    extra = 0


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'general_registration_number', 'department', 'assigned_doctor',
                    'registration_date')
    list_filter = ('department', 'sex')
    search_fields = ('name', 'general_registration_number')
    inlines = [PatientTestInline]


@admin.register(PatientReport)
class PatientReportAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'title', 'priority', 'status', 'created_by', 'created_at')
    list_filter = ('priority', 'status')
    search_fields = ('title', 'patient__name')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'type', 'title', 'read', 'created_at')
    list_filter = ('type', 'read')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id',)
