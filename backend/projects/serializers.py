from rest_framework import serializers

from access.services import ACCESS_RW, get_area_access, has_access_level, visible_projects_q
from areas.models import Area
from tasks.services import resolve_tags
from users.serializers import UserSummarySerializer
from .models import Project, Workspace


class WorkspaceSerializer(serializers.ModelSerializer):
    creator = UserSummarySerializer(read_only=True)
    my_project_count = serializers.SerializerMethodField()
    is_creator = serializers.SerializerMethodField()

    class Meta:
        model = Workspace
        fields = ('uid', 'name', 'creator', 'my_project_count', 'is_creator', 'created_at', 'updated_at')
        read_only_fields = ('uid', 'creator', 'my_project_count', 'is_creator', 'created_at', 'updated_at')
        extra_kwargs = {
            'name': {'error_messages': {'blank': 'Workspace name is required.', 'required': 'Workspace name is required.'}},
        }

    def get_my_project_count(self, obj):
        user = self.context['request'].user
        return obj.projects.filter(visible_projects_q(user)).count()

    def get_is_creator(self, obj):
        return obj.creator_id == self.context['request'].user.id

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Workspace name is required.')
        return value

    def create(self, validated_data):
        validated_data['creator'] = self.context['request'].user
        return super().create(validated_data)


class ProjectSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(source='user', read_only=True)
    area = serializers.SlugRelatedField(
        slug_field='uid', queryset=Area.objects.all(), required=False, allow_null=True
    )
    workspace = serializers.SlugRelatedField(
        slug_field='uid', queryset=Workspace.objects.all(), required=False, allow_null=True
    )
    tags = serializers.SlugRelatedField(slug_field='name', many=True, read_only=True)
    tag_names = serializers.ListField(
        child=serializers.CharField(max_length=100), write_only=True, required=False
    )
    pin_to_sidebar = serializers.SerializerMethodField()
    task_count = serializers.IntegerField(read_only=True, default=0)
    completed_task_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Project
        fields = (
            'uid', 'name', 'description', 'owner', 'area', 'workspace',
            'state', 'priority', 'due_date', 'image_url', 'tags', 'tag_names',
            'pin_to_sidebar', 'task_count', 'completed_task_count',
            'created_at', 'updated_at',
        )
        read_only_fields = ('uid', 'owner', 'created_at', 'updated_at')

    def get_pin_to_sidebar(self, obj):
        pinned = getattr(obj, 'pinned', None)
        if pinned is not None:
            return bool(pinned)
        return obj.pins.filter(user=self.context['request'].user).exists()

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Project name is required.')
        return value

    def validate_area(self, area):
        if area is None:
            return area
        user = self.context['request'].user
        if not has_access_level(get_area_access(user, area), ACCESS_RW):
            raise serializers.ValidationError('You are not a member of this department.')
        return area

    def create(self, validated_data):
        user = self.context['request'].user
        tag_names = validated_data.pop('tag_names', None)
        validated_data['user'] = user
        project = super().create(validated_data)
        if tag_names is not None:
            project.tags.set(resolve_tags(user, tag_names))
        return project

    def update(self, instance, validated_data):
        tag_names = validated_data.pop('tag_names', None)
        project = super().update(instance, validated_data)
        if tag_names is not None:
            project.tags.set(resolve_tags(self.context['request'].user, tag_names))
        return project

