# tasks/serializers.py

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import serializers

from access.services import (
    ACCESS_NONE,
    ACCESS_RW,
    get_project_access,
    get_task_access,
    has_access_level,
)
from projects.models import Project
from users.serializers import UserSummarySerializer
from . import services
from .celery_tasks import schedule_instance_generation
from .models import Tag, Task, TaskAttachment
from .recurrence import RecurrenceRule

logger = logging.getLogger(__name__)

User = get_user_model()


class NamedChoiceField(serializers.ChoiceField):
    """
    Integer choice that also accepts its name ('done', 'high', ...), with
    spaces or dashes in place of underscores.
    """

    def __init__(self, choices_enum, **kwargs):
        self.choices_enum = choices_enum
        super().__init__(choices=choices_enum.choices, **kwargs)

    def to_internal_value(self, data):
        if isinstance(data, str) and not data.strip().isdigit():
            name = data.strip().upper().replace(' ', '_').replace('-', '_')
            if name in self.choices_enum.names:
                return self.choices_enum[name].value
            self.fail('invalid_choice', input=data)
        try:
            data = int(data)
        except (TypeError, ValueError):
            self.fail('invalid_choice', input=data)
        return super().to_internal_value(data)


class TagSerializer(serializers.ModelSerializer):
    class Meta:
        model = Tag
        fields = ('uid', 'name', 'created_at')
        read_only_fields = ('uid', 'created_at')

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Tag name is required.")
        user = self.context['request'].user
        if Tag.objects.filter(user=user, name=value).exists():
            raise serializers.ValidationError("A tag with this name already exists.")
        return value

    def create(self, validated_data):
        validated_data['user'] = self.context['request'].user
        return super().create(validated_data)


class TaskSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(source='user', read_only=True)
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True), required=False, allow_null=True
    )
    assigned_to_user = UserSummarySerializer(source='assigned_to', read_only=True)
    project = serializers.SlugRelatedField(
        slug_field='uid', queryset=Project.objects.all(), required=False, allow_null=True
    )
    project_name = serializers.SerializerMethodField()
    parent_task = serializers.SlugRelatedField(
        slug_field='uid', queryset=Task.objects.all(), required=False, allow_null=True
    )
    recurring_parent = serializers.SlugRelatedField(slug_field='uid', read_only=True)
    status = NamedChoiceField(Task.Status, required=False)
    priority = NamedChoiceField(Task.Priority, required=False)
    tags = serializers.SlugRelatedField(slug_field='name', many=True, read_only=True)
    tag_names = serializers.ListField(
        child=serializers.CharField(max_length=100), write_only=True, required=False
    )
    subscribers = UserSummarySerializer(many=True, read_only=True)
    recurrence_weekdays = serializers.ListField(
        child=serializers.IntegerField(min_value=0, max_value=6), required=False
    )
    update_parent_recurrence = serializers.BooleanField(write_only=True, required=False, default=False)
    access = serializers.SerializerMethodField()
    is_recurring_template = serializers.BooleanField(read_only=True)
    is_virtual = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = (
            'uid', 'name', 'note', 'status', 'priority', 'due_date', 'defer_until',
            'completed_at', 'today', 'owner', 'assigned_to', 'assigned_to_user',
            'project', 'project_name', 'parent_task', 'recurring_parent',
            'recurrence_type', 'recurrence_interval', 'recurrence_end_date',
            'recurrence_weekday', 'recurrence_weekdays', 'recurrence_month_day',
            'recurrence_week_of_month', 'completion_based', 'update_parent_recurrence',
            'tags', 'tag_names', 'subscribers', 'access', 'is_recurring_template',
            'is_virtual', 'created_at', 'updated_at',
        )
        read_only_fields = ('uid', 'completed_at', 'created_at', 'updated_at')

    def get_access(self, obj):
        request = self.context.get('request')
        if request is None:
            return None
        return get_task_access(request.user, obj)

    def get_project_name(self, obj):
        return obj.project.name if obj.project_id else None

    def get_is_virtual(self, obj):
        return False

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Task name is required.")
        return value

    def validate_project(self, project):
        if project is None:
            return project
        user = self.context['request'].user
        if not has_access_level(get_project_access(user, project), ACCESS_RW):
            raise serializers.ValidationError("Project not found.")
        return project

    def validate_parent_task(self, parent):
        if parent is None:
            return parent
        user = self.context['request'].user
        if get_task_access(user, parent) == ACCESS_NONE:
            raise serializers.ValidationError("Parent task not found.")
        if self.instance is not None and parent.id == self.instance.id:
            raise serializers.ValidationError("A task cannot be its own parent.")
        return parent

    def validate(self, attrs):
        def current(name, default=None):
            if name in attrs:
                return attrs[name]
            if self.instance is not None:
                return getattr(self.instance, name)
            return default

        try:
            RecurrenceRule(
                type=current('recurrence_type', Task.RecurrenceType.NONE),
                interval=current('recurrence_interval', 1),
                weekday=current('recurrence_weekday'),
                weekdays=tuple(current('recurrence_weekdays', []) or ()),
                month_day=current('recurrence_month_day'),
                week_of_month=current('recurrence_week_of_month'),
                end_date=current('recurrence_end_date'),
                completion_based=bool(current('completion_based', False)),
            )
        except ValueError as e:
            raise serializers.ValidationError({"recurrence": str(e)})
        return attrs

    def _pop_tags(self, validated_data):
        names = validated_data.pop('tag_names', None)
        if names is None:
            return None
        return services.resolve_tags(self.context['request'].user, names)

    def create(self, validated_data):
        user = self.context['request'].user
        validated_data.pop('update_parent_recurrence', None)
        tags = self._pop_tags(validated_data)
        if tags is not None:
            validated_data['tags'] = tags

        task = services.create_task(user, validated_data)
        schedule_instance_generation(task)
        return task

    def update(self, instance, validated_data):
        user = self.context['request'].user
        tags = self._pop_tags(validated_data)
        if tags is not None:
            validated_data['tags'] = tags

        recurrence_changed = any(
            name in validated_data and validated_data[name] != getattr(instance, name)
            for name in services.RECURRENCE_FIELDS
        )
        if instance.recurring_parent_id and not validated_data.get('update_parent_recurrence'):
            # update_task ignores recurrence fields sent to an instance
            recurrence_changed = False
        task = services.update_task(instance, validated_data, user)
        if recurrence_changed:
            schedule_instance_generation(task.recurring_parent or task)
        return task


class TaskAttachmentSerializer(serializers.ModelSerializer):
    uploaded_by = UserSummarySerializer(source='user', read_only=True)
    file = serializers.FileField(write_only=True)

    class Meta:
        model = TaskAttachment
        fields = ('uid', 'original_filename', 'file_size', 'mime_type', 'uploaded_by', 'file', 'created_at')
        read_only_fields = ('uid', 'original_filename', 'file_size', 'mime_type', 'uploaded_by', 'created_at')

    def validate_file(self, upload):
        max_size = settings.TASKDESK_MAX_ATTACHMENT_SIZE
        if upload.size > max_size:
            raise serializers.ValidationError(f"File exceeds the maximum size of {max_size // (1024 * 1024)} MB.")

        task = self.context['task']
        if task.attachments.count() >= settings.TASKDESK_MAX_ATTACHMENTS_PER_TASK:
            raise serializers.ValidationError(
                f"A task can have at most {settings.TASKDESK_MAX_ATTACHMENTS_PER_TASK} attachments."
            )
        return upload

    def create(self, validated_data):
        upload = validated_data['file']
        return TaskAttachment.objects.create(
            task=self.context['task'],
            user=self.context['request'].user,
            file=upload,
            original_filename=upload.name,
            file_size=upload.size,
            mime_type=getattr(upload, 'content_type', '') or '',
        )


class TaskSubscriptionSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(required=False)


class TaskAssignSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
