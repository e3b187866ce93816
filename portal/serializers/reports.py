import bleach
from rest_framework import serializers

from portal.models import PatientReport
from portal.services.reports import author_name


class PatientReportSerializer(serializers.ModelSerializer):
    created_by = serializers.SerializerMethodField()
    has_file = serializers.SerializerMethodField()

    class Meta:
        model = PatientReport
        fields = ['id', 'patient_id', 'title', 'content', 'file_path', 'has_file', 'priority', 'status',
                  'created_by', 'created_at', 'updated_at']

    def get_created_by(self, obj) -> dict:
        return {'id': obj.created_by_id, 'username': author_name(obj)}

    def get_has_file(self, obj) -> bool:
        return bool(obj.file_path)


class PatientReportWriteSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    content = serializers.CharField(required=False, allow_blank=True, default='')
    priority = serializers.ChoiceField(choices=[c for c, _ in PatientReport.PRIORITY_CHOICES],
                                       default=PatientReport.PRIORITY_NORMAL)
    status = serializers.ChoiceField(choices=[c for c, _ in PatientReport.STATUS_CHOICES],
                                     default=PatientReport.STATUS_DRAFT)
    file = serializers.FileField(required=False, allow_null=True)

    def validate_title(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Title is required')
        return v

    def validate_content(self, v):
        return bleach.clean(v or '', strip=True)
