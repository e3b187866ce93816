import bleach
from rest_framework import serializers

from portal.models import DoctorRecord

from .auth import _password_field
from .users import DepartmentRefSerializer


class DoctorSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source='profile_id', read_only=True)
    username = serializers.CharField(source='profile.username', read_only=True)
    department = DepartmentRefSerializer(read_only=True, allow_null=True)
    patient_count = serializers.SerializerMethodField()

    class Meta:
        model = DoctorRecord
        fields = ['id', 'user_id', 'username', 'name', 'email', 'phone_number', 'specialization',
                  'qualifications', 'schedule', 'department', 'patient_count', 'created_at', 'updated_at']

    def get_patient_count(self, obj) -> int:
        return obj.patients.count()


class DoctorCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    username = serializers.CharField(max_length=150)
    password = _password_field()
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    specialization = serializers.CharField(max_length=255, required=False, allow_blank=True)
    qualifications = serializers.CharField(required=False, allow_blank=True)
    department_id = serializers.IntegerField(required=False, allow_null=True)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Name is required')
        return v


class DoctorListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True)
    department_id = serializers.IntegerField(required=False)
