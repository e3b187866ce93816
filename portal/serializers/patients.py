import bleach
from rest_framework import serializers

from portal.models import Patient, PatientTest


class PatientTestSerializer(serializers.ModelSerializer):
    test_type = serializers.CharField(source='test_type.name', read_only=True)
    test_subtype = serializers.CharField(source='test_subtype.name', read_only=True, allow_null=True)

    class Meta:
        model = PatientTest
        fields = ['id', 'test_type_id', 'test_type', 'test_subtype_id', 'test_subtype', 'status', 'comments',
                  'created_at']


class PatientSerializer(serializers.ModelSerializer):
    tests = PatientTestSerializer(many=True, read_only=True)
    department_name = serializers.CharField(source='department.name', read_only=True)
    assigned_doctor_name = serializers.CharField(source='assigned_doctor.name', read_only=True, allow_null=True)

    class Meta:
        model = Patient
        fields = ['id', 'name', 'age', 'sex', 'general_registration_number', 'department_id', 'department_name',
                  'registration_date', 'contact_info', 'assigned_doctor_id', 'assigned_doctor_name', 'tests',
                  'created_at', 'updated_at']


class PatientTestInputSerializer(serializers.Serializer):
    test_type_id = serializers.IntegerField()
    test_subtype_id = serializers.IntegerField(required=False, allow_null=True)


class PatientRegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    age = serializers.IntegerField(min_value=0, max_value=150)
    sex = serializers.ChoiceField(choices=[c for c, _ in Patient.SEX_CHOICES])
    general_registration_number = serializers.CharField(max_length=64)
    registration_date = serializers.DateField(required=False)
    contact_info = serializers.CharField(max_length=255, required=False, allow_blank=True)
    assigned_doctor_id = serializers.IntegerField(required=False, allow_null=True)
    tests = PatientTestInputSerializer(many=True)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Name is required')
        return v

    def validate_general_registration_number(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Registration number is required')
        return v

    def validate_contact_info(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate_tests(self, v):
        if not v:
            raise serializers.ValidationError('Please select at least one test')
        return v


class PatientSearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
