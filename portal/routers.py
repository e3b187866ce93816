"""
URL mappings for the portal API.

Paths carry no trailing slash; ``APPEND_SLASH`` is off.
"""
from django.urls import include, path

from .views import auth, departments, doctors, health, lab_tests, notifications, patients, reports, users

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/sign-up', auth.sign_up_view, name='sign_up'),
    path('api/auth/sign-in', auth.sign_in_view, name='sign_in'),
    path('api/auth/sign-out', auth.sign_out_view, name='sign_out'),
    path('api/auth/session', auth.session_view, name='session'),
    path('api/auth/guard', auth.guard_view, name='guard'),
    path('api/auth/refresh', auth.refresh_view, name='token_refresh'),
    path('api/auth/change-password', auth.change_password_view, name='change_password'),
    # Administration
    path('api/departments', departments.departments, name='departments'),
    path('api/departments/<int:dept_id>', departments.department_detail, name='department_detail'),
    path('api/users', users.users, name='users'),
    path('api/users/<int:user_id>', users.user_detail, name='user_detail'),
    path('api/users/<int:user_id>/password', users.user_password, name='user_password'),
    # Department
    path('api/doctors', doctors.doctors, name='doctors'),
    path('api/doctors/<int:doctor_id>', doctors.doctor_detail, name='doctor_detail'),
    path('api/tests', lab_tests.test_types, name='test_types'),
    path('api/tests/<int:test_type_id>', lab_tests.test_type_detail, name='test_type_detail'),
    path('api/patients', patients.patients, name='patients'),
    # Doctor
    path('api/doctor/patients', patients.doctor_patients, name='doctor_patients'),
    path('api/doctor/patients/<int:patient_id>', patients.doctor_patient_detail, name='doctor_patient_detail'),
    # Reports
    path('api/patients/<int:patient_id>/reports', reports.patient_reports, name='patient_reports'),
    path('api/reports/<int:report_id>', reports.report_detail, name='report_detail'),
    path('api/reports/<int:report_id>/download', reports.report_download, name='report_download'),
    # Notifications
    path('api/notifications', notifications.notifications, name='notifications'),
    path('api/notifications/<int:notification_id>/read', notifications.notification_read,
         name='notification_read'),
]
