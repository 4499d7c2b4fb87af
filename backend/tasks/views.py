import logging

from django.contrib.auth import get_user_model
from django.http import FileResponse
from django.utils.dateparse import parse_date
from rest_framework import generics, permissions, status
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from access.permissions import TaskAccessPermission
from access.services import ACCESS_RW, get_task_access, has_access_level, visible_tasks_q
from api.utils import parse_int
from . import services
from .metrics import get_task_metrics
from .models import Tag, Task, TaskAttachment
from .queries import TaskQuery, group_by_day, group_by_involvement, group_by_project
from .serializers import (
    TagSerializer,
    TaskAssignSerializer,
    TaskAttachmentSerializer,
    TaskSerializer,
    TaskSubscriptionSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()

DEFAULT_ITERATIONS = 5


def _visible_tasks(user):
    return (
        Task.objects.filter(visible_tasks_q(user))
        .select_related('user', 'assigned_to', 'project', 'parent_task', 'recurring_parent')
        .prefetch_related('tags', 'subscribers')
    )


class TaskMixin:
    """Resolves the task from the `uid` URL kwarg (404 when invisible)."""

    def get_task(self):
        return generics.get_object_or_404(_visible_tasks(self.request.user), uid=self.kwargs['uid'])

    def get_writable_task(self):
        task = self.get_task()
        if not has_access_level(get_task_access(self.request.user, task), ACCESS_RW):
            raise PermissionDenied(TaskAccessPermission.message)
        return task


class TaskListCreateView(generics.GenericAPIView):
    """
    GET: tasks visible to the user, filtered by the query parameters
    understood by TaskQuery; grouped with ?groupBy=day|project|involvement.
    POST: create a task owned by the authenticated user.
    """
    serializer_class = TaskSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        query = TaskQuery(request.user, request.query_params)
        rows, pagination = query.results()

        real = iter(self.get_serializer([row for row in rows if isinstance(row, Task)], many=True).data)
        items, tasks = [], []
        for row in rows:
            if isinstance(row, Task):
                items.append(next(real))
                tasks.append(row)
            else:
                items.append(self._virtual_item(row))
                tasks.append(row['template'])

        payload = {'tasks': items}
        group_by = request.query_params.get('groupBy')
        if group_by == 'day':
            payload['groups'] = group_by_day(items)
        elif group_by == 'project':
            payload['groups'] = group_by_project(items)
        elif group_by == 'involvement':
            payload['groups'] = group_by_involvement(tasks, items, request.user)
        if pagination is not None:
            payload['pagination'] = pagination
        return Response(payload)

    def _virtual_item(self, occurrence):
        template = occurrence['template']
        due_date = occurrence['due_date'].isoformat()
        data = dict(self.get_serializer(template).data)
        data.update({
            'uid': f"{template.uid}-{due_date}",
            'due_date': due_date,
            'recurring_parent': template.uid,
            'recurrence_type': Task.RecurrenceType.NONE,
            'is_recurring_template': False,
            'is_virtual': True,
        })
        return data

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)

task_list_create_view = TaskListCreateView.as_view()


class TaskDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET needs read access, PATCH/PUT write access, DELETE is reserved to
    the owner and superadmins.
    """
    serializer_class = TaskSerializer
    permission_classes = [permissions.IsAuthenticated, TaskAccessPermission]
    lookup_field = 'uid'

    def get_queryset(self):
        return _visible_tasks(self.request.user)

    def check_object_permissions(self, request, obj):
        if request.method == 'DELETE':
            return
        super().check_object_permissions(request, obj)

    def destroy(self, request, *args, **kwargs):
        task = self.get_object()
        services.delete_task(task, request.user)
        return Response({'message': 'Task successfully deleted'}, status=status.HTTP_200_OK)

task_detail_view = TaskDetailView.as_view()


class SubtaskListView(TaskMixin, generics.GenericAPIView):
    serializer_class = TaskSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        task = self.get_task()
        subtasks = _visible_tasks(request.user).filter(parent_task=task).order_by('created_at', 'id')
        return Response({'subtasks': self.get_serializer(subtasks, many=True).data})

subtask_list_view = SubtaskListView.as_view()


class TaskAssignView(TaskMixin, generics.GenericAPIView):
    serializer_class = TaskAssignSerializer
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        task = self.get_task()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        assignee = User.objects.filter(pk=serializer.validated_data['user_id']).first()
        if assignee is None:
            raise NotFound('User not found')

        task = services.assign_task(task, assignee, request.user)
        return Response(TaskSerializer(task, context=self.get_serializer_context()).data)

task_assign_view = TaskAssignView.as_view()


class TaskUnassignView(TaskMixin, generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        task = services.unassign_task(self.get_task(), request.user)
        return Response(TaskSerializer(task, context=self.get_serializer_context()).data)

task_unassign_view = TaskUnassignView.as_view()


class TaskSubscriptionView(TaskMixin, generics.GenericAPIView):
    """
    POST {user_id}: subscribe (or unsubscribe) a user; defaults to the
    requester. Subscribing somebody else needs write access.
    """
    serializer_class = TaskSubscriptionSerializer
    permission_classes = [permissions.IsAuthenticated]
    subscribe = True

    def post(self, request, *args, **kwargs):
        task = self.get_task()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user_id = serializer.validated_data.get('user_id') or request.user.id
        if user_id != request.user.id:
            if not has_access_level(get_task_access(request.user, task), ACCESS_RW):
                raise PermissionDenied(TaskAccessPermission.message)
        user = User.objects.filter(pk=user_id).first()
        if user is None:
            raise NotFound('User not found')

        if self.subscribe:
            services.subscribe_user(task, user, request.user)
        else:
            services.unsubscribe_user(task, user, request.user)

        task = _visible_tasks(request.user).filter(pk=task.pk).first() or task
        return Response(TaskSerializer(task, context=self.get_serializer_context()).data)

task_subscribe_view = TaskSubscriptionView.as_view()
task_unsubscribe_view = TaskSubscriptionView.as_view(subscribe=False)


class NextIterationsView(TaskMixin, generics.GenericAPIView):
    """?startFromDate=YYYY-MM-DD&count=N (default 5, max 50)."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        task = self.get_task()
        start_param = request.query_params.get('startFromDate')
        start_from = parse_date(start_param) if start_param else None
        if start_param and start_from is None:
            raise ValidationError({'detail': 'startFromDate must be a date (YYYY-MM-DD).'})

        count = parse_int(request.query_params.get('count'), DEFAULT_ITERATIONS, minimum=1, maximum=services.MAX_ITERATIONS)
        dates = services.next_iterations(task, start_from=start_from, count=count)
        return Response({'iterations': [{'due_date': day.isoformat()} for day in dates]})

next_iterations_view = NextIterationsView.as_view()


class TaskMetricsView(generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        metrics = get_task_metrics(request.user)
        metrics['suggested_tasks'] = TaskSerializer(
            metrics['suggested_tasks'], many=True, context=self.get_serializer_context()
        ).data
        return Response(metrics)

task_metrics_view = TaskMetricsView.as_view()


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

class AttachmentListCreateView(TaskMixin, generics.GenericAPIView):
    serializer_class = TaskAttachmentSerializer
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def get(self, request, *args, **kwargs):
        task = self.get_task()
        attachments = task.attachments.select_related('user')
        return Response({'attachments': self.get_serializer(attachments, many=True).data})

    def post(self, request, *args, **kwargs):
        task = self.get_writable_task()
        serializer = self.get_serializer(data=request.data, context={**self.get_serializer_context(), 'task': task})
        serializer.is_valid(raise_exception=True)
        attachment = serializer.save()
        logger.info(f"Attachment {attachment.uid} ({attachment.file_size} bytes) added to task {task.uid}")
        return Response(serializer.data, status=status.HTTP_201_CREATED)

attachment_list_create_view = AttachmentListCreateView.as_view()


class AttachmentMixin(TaskMixin):
    def get_attachment(self, task):
        attachment = TaskAttachment.objects.filter(task=task, uid=self.kwargs['attachment_uid']).first()
        if attachment is None:
            raise NotFound('Attachment not found')
        return attachment


class AttachmentDownloadView(AttachmentMixin, generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        attachment = self.get_attachment(self.get_task())
        return FileResponse(
            attachment.file.open('rb'),
            as_attachment=True,
            filename=attachment.original_filename,
            content_type=attachment.mime_type or 'application/octet-stream',
        )

attachment_download_view = AttachmentDownloadView.as_view()


class AttachmentDestroyView(AttachmentMixin, generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, *args, **kwargs):
        attachment = self.get_attachment(self.get_writable_task())
        attachment.file.delete(save=False)
        attachment.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

attachment_destroy_view = AttachmentDestroyView.as_view()


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

class TagListCreateView(generics.ListCreateAPIView):
    serializer_class = TagSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return Tag.objects.filter(user=self.request.user)

tag_list_create_view = TagListCreateView.as_view()


class TagDestroyView(generics.DestroyAPIView):
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'uid'

    def get_queryset(self):
        return Tag.objects.filter(user=self.request.user)

tag_destroy_view = TagDestroyView.as_view()
