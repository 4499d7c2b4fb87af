from rest_framework import serializers

from users.serializers import UserSummarySerializer
from .models import Area, AreasMember, AreasSubscriber
from .services import create_area


class AreaMemberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = AreasMember
        fields = ('user', 'role', 'created_at')
        read_only_fields = fields


class AreaSubscriberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    added_by = serializers.ReadOnlyField(source='added_by_id')

    class Meta:
        model = AreasSubscriber
        fields = ('user', 'source', 'added_by', 'created_at')
        read_only_fields = fields


class AreaSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(source='user', read_only=True)
    members = AreaMemberSerializer(source='memberships', many=True, read_only=True)
    my_role = serializers.SerializerMethodField()

    class Meta:
        model = Area
        fields = ('uid', 'name', 'description', 'owner', 'members', 'my_role', 'created_at', 'updated_at')
        read_only_fields = ('uid', 'owner', 'members', 'my_role', 'created_at', 'updated_at')

    def get_my_role(self, obj):
        request = self.context.get('request')
        if request is None:
            return None
        if obj.user_id == request.user.id:
            return AreasMember.Role.ADMIN
        for membership in obj.memberships.all():
            if membership.user_id == request.user.id:
                return membership.role
        return None

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Department name is required.")
        return value

    def create(self, validated_data):
        user = self.context['request'].user
        return create_area(user, validated_data['name'], validated_data.get('description', ''))


class AddMemberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=AreasMember.Role.choices, default=AreasMember.Role.MEMBER)


class MemberRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=AreasMember.Role.choices)


class AddSubscriberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(required=False)
    retroactive = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if attrs.get('user_id') is None:
            raise serializers.ValidationError({"detail": "user_id is required"})
        return attrs
