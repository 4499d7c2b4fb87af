from django.db.models import Count, Exists, OuterRef, Q
from rest_framework import generics, permissions, status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.response import Response

from access.permissions import ResourceAccessPermission
from access.services import visible_projects_q
from api.utils import parse_bool
from tasks.models import Task
from . import services
from .models import Project, ProjectPin, Workspace
from .serializers import ProjectSerializer, WorkspaceSerializer


def _project_queryset(user):
    return (
        Project.objects.filter(visible_projects_q(user))
        .select_related('user', 'area', 'workspace')
        .prefetch_related('tags')
        .annotate(
            pinned=Exists(ProjectPin.objects.filter(project=OuterRef('pk'), user=user)),
            task_count=Count('tasks', distinct=True),
            completed_task_count=Count('tasks', filter=Q(tasks__status=Task.Status.DONE), distinct=True),
        )
    )


class ProjectListCreateView(generics.ListCreateAPIView):
    """
    GET: visible projects. Filters: ?state= (or 'all'), ?active=true,
    ?area=<uid>, ?workspace=<uid>, ?pinned=true.
    POST: create a project owned by the requester.
    """
    serializer_class = ProjectSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        queryset = _project_queryset(self.request.user)
        params = self.request.query_params

        state = params.get('state')
        if state and state != 'all':
            queryset = queryset.filter(state=state)

        if parse_bool(params.get('active')):
            queryset = queryset.filter(state__in=Project.ACTIVE_STATES)

        area = params.get('area')
        if area:
            queryset = queryset.filter(area__uid=area)

        workspace = params.get('workspace')
        if workspace:
            queryset = queryset.filter(workspace__uid=workspace)

        if parse_bool(params.get('pinned')):
            queryset = queryset.filter(pinned=True)

        return queryset.order_by('name')

project_list_create_view = ProjectListCreateView.as_view()


class ProjectDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = ProjectSerializer
    permission_classes = [permissions.IsAuthenticated, ResourceAccessPermission]
    lookup_field = 'uid'

    def get_queryset(self):
        return _project_queryset(self.request.user)

    def destroy(self, request, *args, **kwargs):
        project = self.get_object()
        services.delete_project(project, request.user)
        return Response({'message': 'Project successfully deleted'}, status=status.HTTP_200_OK)

project_detail_view = ProjectDetailView.as_view()


class ProjectPinView(generics.GenericAPIView):
    """POST {pinned: bool}: pin or unpin the project in the sidebar."""
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'uid'

    def get_queryset(self):
        return Project.objects.filter(visible_projects_q(self.request.user))

    def post(self, request, *args, **kwargs):
        project = self.get_object()
        pinned = request.data.get('pinned')
        if not isinstance(pinned, bool):
            raise ValidationError({'detail': '`pinned` must be a boolean.'})

        pinned = services.set_project_pinned(project, request.user, pinned)
        return Response({'uid': project.uid, 'pin_to_sidebar': pinned})

project_pin_view = ProjectPinView.as_view()


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------

def _workspace_queryset(user):
    project_workspace_ids = (
        Project.objects.filter(visible_projects_q(user))
        .exclude(workspace__isnull=True)
        .values('workspace_id')
    )
    return Workspace.objects.filter(Q(creator=user) | Q(id__in=project_workspace_ids)).select_related('creator')


class WorkspaceListCreateView(generics.ListCreateAPIView):
    """
    GET: workspaces the user created or that hold projects the user can see.
    POST: create a workspace.
    """
    serializer_class = WorkspaceSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return _workspace_queryset(self.request.user).order_by('name')

workspace_list_create_view = WorkspaceListCreateView.as_view()


class WorkspaceDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = WorkspaceSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'uid'

    def get_queryset(self):
        return _workspace_queryset(self.request.user)

    def check_object_permissions(self, request, obj):
        super().check_object_permissions(request, obj)
        if request.method not in permissions.SAFE_METHODS and obj.creator_id != request.user.id:
            raise PermissionDenied('Not authorized to modify this workspace.')

    def destroy(self, request, *args, **kwargs):
        workspace = self.get_object()
        workspace.delete()
        return Response({'message': 'Workspace deleted'}, status=status.HTTP_200_OK)

workspace_detail_view = WorkspaceDetailView.as_view()
