# access/services.py
"""
Access resolution.

Answers two questions for a user:
- get_access(): which level (none / ro / rw / admin) does the user hold on a
  single area, project or task?
- visible_*_q(): which rows may the user see in list views?
"""

import logging
from typing import List

from django.db.models import Q

from areas.models import Area, AreasMember
from projects.models import Project
from tasks.models import Task, TaskSubscriber
from .models import AccessLevel, Permission, ResourceType

logger = logging.getLogger(__name__)

ACCESS_NONE = 'none'
ACCESS_RO = AccessLevel.READ_ONLY.value
ACCESS_RW = AccessLevel.READ_WRITE.value
ACCESS_ADMIN = AccessLevel.ADMIN.value

ACCESS_RANK = {
    ACCESS_NONE: 0,
    ACCESS_RO: 1,
    ACCESS_RW: 2,
    ACCESS_ADMIN: 3,
}


def has_access_level(actual: str, required: str) -> bool:
    return ACCESS_RANK.get(actual, 0) >= ACCESS_RANK[required]


def is_superadmin(user) -> bool:
    return bool(user and user.is_authenticated and user.is_superadmin)


def admin_area_ids(user) -> List[int]:
    """Departments the user owns or administers."""
    owned = Area.objects.filter(user=user).values_list('id', flat=True)
    administered = AreasMember.objects.filter(
        user=user, role=AreasMember.Role.ADMIN
    ).values_list('area_id', flat=True)
    return sorted(set(owned) | set(administered))


def department_member_user_ids(user) -> List[int]:
    """
    Users of every department the given user owns or administers: all
    members plus the department owners (the admin included). Empty when the
    user administers no department.
    """
    area_ids = admin_area_ids(user)
    if not area_ids:
        return []

    member_ids = AreasMember.objects.filter(area_id__in=area_ids).values_list('user_id', flat=True)
    owner_ids = Area.objects.filter(id__in=area_ids).values_list('user_id', flat=True)
    return sorted(set(member_ids) | set(owner_ids))


def is_department_admin_of(admin, member_id) -> bool:
    return member_id in department_member_user_ids(admin)


def _shared_access(user, resource_type, resource_uid) -> str:
    permission = Permission.objects.filter(
        user=user, resource_type=resource_type, resource_uid=resource_uid
    ).values_list('access_level', flat=True).first()
    return permission or ACCESS_NONE


def _project_access(user, project) -> str:
    if project.user_id == user.id:
        return ACCESS_RW
    shared = _shared_access(user, ResourceType.PROJECT, project.uid)
    if shared != ACCESS_NONE:
        return shared
    # Projects added to the department after the member joined have no cascaded row.
    if project.area_id and AreasMember.objects.filter(area_id=project.area_id, user=user).exists():
        return ACCESS_RW
    return ACCESS_NONE


def _task_access(user, task) -> str:
    if task.user_id == user.id:
        return ACCESS_RW
    if task.assigned_to_id == user.id:
        return ACCESS_RW

    # Department admins can read (not edit) their members' tasks.
    if task.user_id in department_member_user_ids(user):
        return ACCESS_RO

    if task.project_id:
        project_access = _project_access(user, task.project)
        if project_access != ACCESS_NONE:
            return project_access

    return _shared_access(user, ResourceType.TASK, task.uid)


def _area_access(user, area) -> str:
    if area.user_id == user.id:
        return ACCESS_ADMIN

    role = AreasMember.objects.filter(area=area, user=user).values_list('role', flat=True).first()
    if role:
        return ACCESS_ADMIN if role == AreasMember.Role.ADMIN else ACCESS_RW

    return _shared_access(user, ResourceType.AREA, area.uid)


def get_access(user, resource_type: str, resource_uid: str) -> str:
    """
    Effective access level of `user` on the resource identified by type and
    uid. Unknown resources resolve to 'none'.
    """
    if not user or not user.is_authenticated:
        return ACCESS_NONE

    if resource_type == ResourceType.TASK:
        task = Task.objects.select_related('project').filter(uid=resource_uid).first()
        if task is None:
            return ACCESS_NONE
        return get_task_access(user, task)

    if resource_type == ResourceType.PROJECT:
        project = Project.objects.filter(uid=resource_uid).first()
        if project is None:
            return ACCESS_NONE
        return get_project_access(user, project)

    if resource_type == ResourceType.AREA:
        area = Area.objects.filter(uid=resource_uid).first()
        if area is None:
            return ACCESS_NONE
        return get_area_access(user, area)

    logger.warning(f"Access requested for unsupported resource type {resource_type!r}")
    return ACCESS_NONE


def get_task_access(user, task) -> str:
    # Superadmins edit every task but do not "administer" tasks.
    if is_superadmin(user):
        return ACCESS_RW
    return _task_access(user, task)


def get_project_access(user, project) -> str:
    if is_superadmin(user):
        return ACCESS_ADMIN
    return _project_access(user, project)


def get_area_access(user, area) -> str:
    if is_superadmin(user):
        return ACCESS_ADMIN
    return _area_access(user, area)


def get_object_access(user, obj) -> str:
    """get_access() for an already loaded Area, Project or Task instance."""
    if isinstance(obj, Task):
        return get_task_access(user, obj)
    if isinstance(obj, Project):
        return get_project_access(user, obj)
    if isinstance(obj, Area):
        return get_area_access(user, obj)
    raise TypeError(f"Unsupported resource: {type(obj).__name__}")


def can_delete_task(user, task) -> bool:
    """Only the owner or a superadmin may delete a task."""
    return task.user_id == user.id or is_superadmin(user)


# ---------------------------------------------------------------------------
# Queryset filters
# ---------------------------------------------------------------------------

def _shared_uids(user, resource_type):
    return Permission.objects.filter(user=user, resource_type=resource_type).values('resource_uid')


def _subscribed_task_ids(user):
    return TaskSubscriber.objects.filter(user=user).values('task_id')


def visible_tasks_q(user) -> Q:
    """
    Tasks the user can see: owned, assigned, shared directly, inside owned,
    shared or department projects, subscribed, or owned by members of a
    department the user administers. Superadmins see everything.
    """
    if is_superadmin(user):
        return Q()

    member_area_ids = AreasMember.objects.filter(user=user).values('area_id')
    q = (
        Q(user=user)
        | Q(assigned_to=user)
        | Q(uid__in=_shared_uids(user, ResourceType.TASK))
        | Q(project__user=user)
        | Q(project__area_id__in=member_area_ids)
        | Q(project__uid__in=_shared_uids(user, ResourceType.PROJECT))
        | Q(id__in=_subscribed_task_ids(user))
    )

    member_ids = department_member_user_ids(user)
    if member_ids:
        q |= Q(user_id__in=member_ids)
    return q


def visible_projects_q(user) -> Q:
    """Projects owned, shared, or belonging to a department the user is part of."""
    if is_superadmin(user):
        return Q()

    member_area_ids = AreasMember.objects.filter(user=user).values('area_id')
    return (
        Q(user=user)
        | Q(uid__in=_shared_uids(user, ResourceType.PROJECT))
        | Q(area_id__in=member_area_ids)
        | Q(area__user=user)
    )


def visible_areas_q(user) -> Q:
    if is_superadmin(user):
        return Q()
    return Q(user=user) | Q(id__in=AreasMember.objects.filter(user=user).values('area_id'))


def actionable_tasks_q(user) -> Q:
    """Tasks the user is involved with: owned, assigned or subscribed."""
    return Q(user=user) | Q(assigned_to=user) | Q(id__in=_subscribed_task_ids(user))


def owned_or_assigned_tasks_q(user) -> Q:
    return Q(user=user) | Q(assigned_to=user)
