from django.conf import settings
from rest_framework import serializers

from portal.models import Profile


def _password_field(**kwargs):
    return serializers.CharField(min_length=settings.AUTH_PASSWORD_MIN_LENGTH, write_only=True,
                                 trim_whitespace=False, **kwargs)


class SignUpSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = _password_field()
    username = serializers.CharField(max_length=150)
    role = serializers.ChoiceField(choices=[r for r, _ in Profile.ROLE_CHOICES])

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Username is required')
        return v


class SignInSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True, trim_whitespace=False)
    new_password = _password_field()
    confirm_password = serializers.CharField(write_only=True, trim_whitespace=False, required=False)

    def validate(self, attrs):
        confirm = attrs.get('confirm_password')
        if confirm is not None and confirm != attrs['new_password']:
            raise serializers.ValidationError({'confirm_password': ['Passwords do not match']})
        return attrs


class SetPasswordSerializer(serializers.Serializer):
    password = _password_field()


class GuardQuerySerializer(serializers.Serializer):
    path = serializers.CharField()
