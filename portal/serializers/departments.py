import bleach
from rest_framework import serializers

from portal.models import Department


class DepartmentSerializer(serializers.ModelSerializer):
    user_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Department
        fields = ['id', 'name', 'description', 'code', 'user_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Department name is required')
        return v

    def validate_description(self, v):
        return bleach.clean((v or '').strip(), strip=True)
