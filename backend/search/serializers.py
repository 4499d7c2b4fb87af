from rest_framework import serializers

from .models import SavedView
from .services import DATE_RANGES, ENTITY_TYPES, EXTRAS, PRIORITY_NAMES, RECURRING_VALUES


def _optional_choice(choices):
    return serializers.ChoiceField(choices=[''] + list(choices), required=False, allow_blank=True)


class SavedViewSerializer(serializers.ModelSerializer):
    filters = serializers.ListField(
        child=serializers.ChoiceField(choices=ENTITY_TYPES), required=False
    )
    tags = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    extras = serializers.ListField(child=serializers.ChoiceField(choices=EXTRAS), required=False)
    priority = _optional_choice(PRIORITY_NAMES)
    due = _optional_choice(DATE_RANGES)
    defer = _optional_choice(DATE_RANGES)
    recurring = _optional_choice(RECURRING_VALUES)

    class Meta:
        model = SavedView
        fields = (
            'uid', 'name', 'search_query', 'filters', 'priority', 'due', 'defer',
            'tags', 'extras', 'recurring', 'is_pinned', 'created_at', 'updated_at',
        )
        read_only_fields = ('uid', 'created_at', 'updated_at')
        extra_kwargs = {
            'name': {'error_messages': {'blank': 'View name is required.', 'required': 'View name is required.'}},
        }

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("View name is required.")
        return value

    def create(self, validated_data):
        validated_data['user'] = self.context['request'].user
        return super().create(validated_data)
