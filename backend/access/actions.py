# access/actions.py
"""
Sharing and membership actions.

exec_action() is the single entry point that changes who can access what.
It authorizes the actor, records an Action row, asks the calculator for the
resource type which Permission rows must be upserted or deleted (including
the cascade to child resources) and applies the result atomically.
"""

import logging
from typing import Dict, List, Optional, Set

from django.db import transaction
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from areas.models import Area, AreasMember
from projects.models import Project
from tasks.models import Task
from .models import AccessLevel, Action, Permission, Propagation, ResourceType
from .services import is_superadmin

logger = logging.getLogger(__name__)

VERB_SHARE_GRANT = 'share_grant'
VERB_SHARE_REVOKE = 'share_revoke'
VERB_AREA_MEMBER_ADD = 'area_member_add'
VERB_AREA_MEMBER_REMOVE = 'area_member_remove'

GRANT_VERBS = (VERB_SHARE_GRANT, VERB_AREA_MEMBER_ADD)
VERBS = (VERB_SHARE_GRANT, VERB_SHARE_REVOKE, VERB_AREA_MEMBER_ADD, VERB_AREA_MEMBER_REMOVE)


class PermissionChanges:
    """Upserts and deletes computed for one action."""

    def __init__(self):
        self.upserts: List[Dict] = []
        self.deletes: List[Dict] = []

    def upsert(self, user_id, resource_type, resource_uid, access_level, propagation, granted_by_id):
        self.upserts.append({
            'user_id': user_id,
            'resource_type': resource_type,
            'resource_uid': resource_uid,
            'access_level': access_level,
            'propagation': propagation,
            'granted_by_id': granted_by_id,
        })

    def delete(self, user_id, resource_type, resource_uid):
        self.deletes.append({
            'user_id': user_id,
            'resource_type': resource_type,
            'resource_uid': resource_uid,
        })


# ---------------------------------------------------------------------------
# Descendant collection
# ---------------------------------------------------------------------------

def collect_subtree_uids(root_ids) -> List[str]:
    """uids of the given tasks and all their subtasks (breadth first)."""
    seen: Set[int] = set()
    uids: List[str] = []
    frontier = list(root_ids)
    while frontier:
        level_ids = []
        for task_id, uid in Task.objects.filter(id__in=frontier).exclude(id__in=seen).values_list('id', 'uid'):
            seen.add(task_id)
            uids.append(uid)
            level_ids.append(task_id)
        if not level_ids:
            break
        frontier = list(
            Task.objects.filter(parent_task_id__in=level_ids).exclude(id__in=seen).values_list('id', flat=True)
        )
    return uids


def collect_project_task_uids(project_id) -> List[str]:
    root_ids = Task.objects.filter(project_id=project_id).values_list('id', flat=True)
    return collect_subtree_uids(list(root_ids))


# ---------------------------------------------------------------------------
# Calculators
# ---------------------------------------------------------------------------

def calculate_project_permissions(action: Action) -> PermissionChanges:
    changes = PermissionChanges()
    project = Project.objects.filter(uid=action.resource_uid).first()
    if project is None:
        return changes

    task_uids = collect_project_task_uids(project.id)

    if action.verb == VERB_SHARE_GRANT:
        changes.upsert(action.target_user_id, ResourceType.PROJECT, project.uid,
                       action.access_level, Propagation.DIRECT, action.actor_id)
        for uid in task_uids:
            changes.upsert(action.target_user_id, ResourceType.TASK, uid,
                           action.access_level, Propagation.INHERITED, action.actor_id)
    elif action.verb == VERB_SHARE_REVOKE:
        changes.delete(action.target_user_id, ResourceType.PROJECT, project.uid)
        for uid in task_uids:
            changes.delete(action.target_user_id, ResourceType.TASK, uid)
    return changes


def calculate_task_permissions(action: Action) -> PermissionChanges:
    changes = PermissionChanges()
    task = Task.objects.filter(uid=action.resource_uid).first()
    if task is None:
        return changes

    for uid in collect_subtree_uids([task.id]):
        if action.verb == VERB_SHARE_GRANT:
            propagation = Propagation.DIRECT if uid == task.uid else Propagation.INHERITED
            changes.upsert(action.target_user_id, ResourceType.TASK, uid,
                           action.access_level, propagation, action.actor_id)
        elif action.verb == VERB_SHARE_REVOKE:
            changes.delete(action.target_user_id, ResourceType.TASK, uid)
    return changes


def calculate_area_permissions(action: Action) -> PermissionChanges:
    changes = PermissionChanges()
    area = Area.objects.filter(uid=action.resource_uid).first()
    if area is None:
        return changes

    projects = list(Project.objects.filter(area=area).values_list('id', 'uid'))
    task_uids: List[str] = []
    for project_id, _ in projects:
        task_uids.extend(collect_project_task_uids(project_id))

    target = action.target_user_id
    if action.verb in (VERB_AREA_MEMBER_ADD, VERB_SHARE_GRANT):
        changes.upsert(target, ResourceType.AREA, area.uid, action.access_level,
                       Propagation.AREA_MEMBERSHIP, action.actor_id)
        for _, project_uid in projects:
            changes.upsert(target, ResourceType.PROJECT, project_uid, action.access_level,
                           Propagation.INHERITED, action.actor_id)
        for uid in task_uids:
            changes.upsert(target, ResourceType.TASK, uid, action.access_level,
                           Propagation.INHERITED, action.actor_id)
    elif action.verb in (VERB_AREA_MEMBER_REMOVE, VERB_SHARE_REVOKE):
        changes.delete(target, ResourceType.AREA, area.uid)
        for _, project_uid in projects:
            changes.delete(target, ResourceType.PROJECT, project_uid)
        for uid in task_uids:
            changes.delete(target, ResourceType.TASK, uid)
    return changes


CALCULATORS = {
    ResourceType.PROJECT: calculate_project_permissions,
    ResourceType.TASK: calculate_task_permissions,
    ResourceType.AREA: calculate_area_permissions,
}


def apply_permission_changes(changes: PermissionChanges, source_action: Optional[Action] = None):
    for row in changes.deletes:
        Permission.objects.filter(**row).delete()

    for row in changes.upserts:
        Permission.objects.update_or_create(
            user_id=row['user_id'],
            resource_type=row['resource_type'],
            resource_uid=row['resource_uid'],
            defaults={
                'access_level': row['access_level'],
                'propagation': row['propagation'],
                'granted_by_id': row['granted_by_id'],
                'source_action': source_action,
            },
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _resolve_owner_id(resource_type, resource_uid):
    model = {
        ResourceType.PROJECT: Project,
        ResourceType.TASK: Task,
        ResourceType.AREA: Area,
    }.get(resource_type)
    if model is None:
        raise ValidationError(f"Unsupported resource type: {resource_type}")

    row = model.objects.select_for_update().filter(uid=resource_uid).values('user_id').first()
    if row is None:
        raise NotFound('Resource not found')
    return row['user_id']


def assert_actor_can_share(actor, resource_type, owner_id, resource_uid):
    """Superadmins and owners may share; department admins may share their department."""
    if is_superadmin(actor):
        return
    if owner_id == actor.id:
        return
    if resource_type == ResourceType.AREA and AreasMember.objects.filter(
        area__uid=resource_uid, user=actor, role=AreasMember.Role.ADMIN
    ).exists():
        return
    raise PermissionDenied('Forbidden')


def exec_action(*, verb, actor, target, resource_type, resource_uid, access_level=None, metadata=None) -> Action:
    if verb not in VERBS:
        raise ValidationError(f"Unsupported action: {verb}")
    if verb in GRANT_VERBS and access_level not in AccessLevel.values:
        raise ValidationError(f"Invalid access level: {access_level}")

    with transaction.atomic():
        owner_id = _resolve_owner_id(resource_type, resource_uid)
        assert_actor_can_share(actor, resource_type, owner_id, resource_uid)

        action = Action.objects.create(
            actor=actor,
            verb=verb,
            resource_type=resource_type,
            resource_uid=resource_uid,
            target_user=target,
            access_level=access_level if verb in GRANT_VERBS else None,
            metadata=metadata,
        )

        changes = CALCULATORS[resource_type](action)
        apply_permission_changes(changes, source_action=action)

    logger.info(
        f"Action {verb} on {resource_type}:{resource_uid} by user {actor.id} for user {target.id}: "
        f"{len(changes.upserts)} upserts, {len(changes.deletes)} deletes"
    )
    return action
