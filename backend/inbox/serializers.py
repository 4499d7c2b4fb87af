from rest_framework import serializers

from .models import InboxItem


class InboxItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InboxItem
        fields = ('uid', 'content', 'title', 'status', 'source', 'created_at', 'updated_at')
        read_only_fields = ('uid', 'created_at', 'updated_at')
        extra_kwargs = {
            'content': {'error_messages': {'blank': 'Content is required.', 'required': 'Content is required.'}},
        }

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError("Content is required.")
        return value.strip()

    def create(self, validated_data):
        validated_data['user'] = self.context['request'].user
        validated_data.pop('status', None)
        return super().create(validated_data)
