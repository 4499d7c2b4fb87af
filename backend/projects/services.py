# projects/services.py
import logging

from django.conf import settings
from django.db import transaction
from rest_framework.exceptions import PermissionDenied, ValidationError

from access.models import Permission, ResourceType
from access.services import is_superadmin
from tasks.models import Task
from .models import Project, ProjectPin

logger = logging.getLogger(__name__)


def set_project_pinned(project, user, pinned: bool) -> bool:
    """
    Pin or unpin a project in the user's sidebar. Idempotent; at most
    TASKDESK_MAX_PINNED_PROJECTS pins per user.
    """
    if not pinned:
        ProjectPin.objects.filter(project=project, user=user).delete()
        return False

    if ProjectPin.objects.filter(project=project, user=user).exists():
        return True

    limit = settings.TASKDESK_MAX_PINNED_PROJECTS
    if ProjectPin.objects.filter(user=user).count() >= limit:
        raise ValidationError({'detail': f'Maximum of {limit} pinned projects allowed.'})

    ProjectPin.objects.create(project=project, user=user)
    return True


def delete_project(project, user):
    """
    Delete a project. Its tasks are kept without a project; shares of the
    project are removed.
    """
    if project.user_id != user.id and not is_superadmin(user):
        raise PermissionDenied('Only the project owner can delete this project.')

    with transaction.atomic():
        orphaned = Task.objects.filter(project=project).update(project=None)
        Permission.objects.filter(resource_type=ResourceType.PROJECT, resource_uid=project.uid).delete()
        project_uid = project.uid
        project.delete()

    logger.info(f"Project {project_uid} deleted by user {user.id}; {orphaned} tasks orphaned")

