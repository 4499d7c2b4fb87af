from django.contrib.auth import get_user_model
from rest_framework import serializers

from users.serializers import UserSummarySerializer
from .models import AccessLevel, Permission, ResourceType

User = get_user_model()


class ShareSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = Permission
        fields = ('user', 'resource_type', 'resource_uid', 'access_level', 'propagation', 'created_at')
        read_only_fields = fields


class ShareActionSerializer(serializers.Serializer):
    """Payload of POST /shares/."""
    resource_type = serializers.ChoiceField(choices=ResourceType.choices)
    resource_uid = serializers.CharField(max_length=32)
    target_user_email = serializers.EmailField()
    action = serializers.ChoiceField(choices=(('grant', 'grant'), ('revoke', 'revoke')), default='grant')
    access_level = serializers.ChoiceField(choices=AccessLevel.choices, required=False)

    def validate(self, attrs):
        if attrs['action'] == 'grant' and not attrs.get('access_level'):
            raise serializers.ValidationError({"access_level": "access_level is required when granting."})
        return attrs
