import bleach
from rest_framework import serializers

from portal.models import Department, Profile

from .auth import _password_field


class DepartmentRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Department
        fields = ['id', 'name']


class ProfileSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(source='pk', read_only=True)
    department_id = serializers.IntegerField(read_only=True, allow_null=True)
    department = DepartmentRefSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Profile
        fields = ['id', 'email', 'username', 'role', 'department_id', 'department', 'created_at', 'updated_at']


class UserCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = _password_field()
    username = serializers.CharField(max_length=150)
    role = serializers.ChoiceField(choices=[r for r, _ in Profile.ROLE_CHOICES])
    department_id = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.all(), required=False, allow_null=True, source='department')

    def validate_username(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class UserUpdateSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150, required=False)
    role = serializers.ChoiceField(choices=[r for r, _ in Profile.ROLE_CHOICES], required=False)
    department_id = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.all(), required=False, allow_null=True, source='department')

    def validate_username(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Username is required')
        return v
