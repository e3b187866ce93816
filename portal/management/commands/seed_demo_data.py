"""
Management command to populate the database with demo data.

Builds on ``ensure_test_users``: adds a few test types, patients assigned
to the test doctor and some reports.  Existing rows are left alone, so the
command can be re-run.
"""
import random
from datetime import timedelta

from django.core.management import call_command
from django.core.management.base import BaseCommand
from django.utils import timezone

from portal.models import DoctorRecord, Patient, PatientReport, Profile, TestType
from portal.services.lab_tests import create_test_type
from portal.services.patients import register_patient
from portal.services.reports import save_report

TEST_CATALOGUE = [
    ("Complete Blood Count", []),
    ("X-Ray", ["Chest", "Abdomen", "Spine"]),
    ("MRI", ["Brain", "Knee"]),
    ("Urinalysis", []),
]

PATIENT_NAMES = ["Ana Lopez", "Ben Carter", "Chen Wei", "Dara Singh", "Emil Novak", "Fatima Zahra"]


class Command(BaseCommand):
    help = "Populate the database with demo departments, tests, patients and reports"

    def add_arguments(self, parser):
        parser.add_argument("--patients", type=int, default=len(PATIENT_NAMES))
        parser.add_argument("--seed", type=int, default=42)

    def handle(self, *args, **options):
        rng = random.Random(options["seed"])
        call_command("ensure_test_users", stdout=self.stdout)

        staff = Profile.objects.select_related("user").get(role=Profile.ROLE_DEPARTMENT, username="department")
        doctor = DoctorRecord.objects.get(profile__username="doctor")

        test_types = self.create_test_types(staff)
        patients = self.create_patients(staff, doctor, test_types, rng, options["patients"])
        reports = self.create_reports(staff, patients, rng)

        self.stdout.write(self.style.SUCCESS(
            f"Demo data ready: {len(test_types)} test types, {len(patients)} patients, {reports} new reports"
        ))

    def create_test_types(self, staff):
        result = []
        for name, subtypes in TEST_CATALOGUE:
            existing = TestType.objects.filter(department_id=staff.department_id, name=name).first()
            result.append(existing or create_test_type(staff.user, staff.department_id, name=name, subtypes=subtypes))
        return result

    def create_patients(self, staff, doctor, test_types, rng, count):
        today = timezone.localdate()
        patients = []
        for i in range(count):
            grn = f"GRN-{1000 + i}"
            patient = Patient.objects.filter(general_registration_number=grn).first()
            if patient is None:
                chosen = rng.sample(test_types, k=min(2, len(test_types)))
                tests = []
                for tt in chosen:
                    sub = tt.subtypes.order_by("?").first() if tt.has_subtypes else None
                    tests.append({"test_type_id": tt.pk, "test_subtype_id": sub.pk if sub else None})
                patient = register_patient(
                    staff.user, staff,
                    name=PATIENT_NAMES[i % len(PATIENT_NAMES)],
                    age=rng.randint(18, 85),
                    sex=rng.choice(["Male", "Female", "Other"]),
                    general_registration_number=grn,
                    registration_date=today - timedelta(days=rng.randint(0, 60)),
                    contact_info=f"+1-555-01{i:02d}",
                    assigned_doctor_id=doctor.pk if i % 2 == 0 else None,
                    tests=tests,
                )
            patients.append(patient)
        return patients

    def create_reports(self, staff, patients, rng):
        created = 0
        for patient in patients:
            if patient.reports.exists():
                continue
            save_report(
                staff.user, patient,
                title="Initial assessment",
                content="Baseline findings recorded at registration.",
                priority=rng.choice([PatientReport.PRIORITY_NORMAL, PatientReport.PRIORITY_URGENT]),
                status=PatientReport.STATUS_PUBLISHED,
            )
            created += 1
        return created
