# areas/services.py
"""
Department membership and subscriber management.

Membership changes go through exec_action() so the member's permissions on
the department's projects and tasks stay in sync. Admin members are also
subscribed to the department (source 'admin_role'), which subscribes them to
every new task created by a member.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from access.actions import VERB_AREA_MEMBER_ADD, VERB_AREA_MEMBER_REMOVE, exec_action
from access.models import AccessLevel, Action, Permission, Propagation, ResourceType
from access.services import is_superadmin
from api.exceptions import Conflict
from .models import Area, AreasMember, AreasSubscriber

logger = logging.getLogger(__name__)

User = get_user_model()

NOT_AUTHORIZED = 'Not authorized to manage area members'


def _access_for_role(role):
    return AccessLevel.ADMIN if role == AreasMember.Role.ADMIN else AccessLevel.READ_WRITE


def can_manage_area_members(area, user) -> bool:
    """Owner, superadmin or department admin."""
    if area.user_id == user.id:
        return True
    if is_superadmin(user):
        return True
    return AreasMember.objects.filter(area=area, user=user, role=AreasMember.Role.ADMIN).exists()


def _require_manager(area, user):
    if not can_manage_area_members(area, user):
        raise PermissionDenied(NOT_AUTHORIZED)


def _get_user(user_id):
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found')
    return user


# ---------------------------------------------------------------------------
# Areas
# ---------------------------------------------------------------------------

def create_area(owner, name, description=''):
    """
    Create a department. The creator becomes its admin member unless they
    already belong to another department.
    """
    with transaction.atomic():
        area = Area.objects.create(user=owner, name=name.strip(), description=description or '')
        if not AreasMember.objects.filter(user=owner).exists():
            AreasMember.objects.create(area=area, user=owner, role=AreasMember.Role.ADMIN)
            ensure_admin_subscriber(area, owner, owner)
        else:
            logger.info(f"User {owner.id} already belongs to a department; not adding as member of area {area.uid}")

    exec_action(
        verb=VERB_AREA_MEMBER_ADD,
        actor=owner,
        target=owner,
        resource_type=ResourceType.AREA,
        resource_uid=area.uid,
        access_level=AccessLevel.ADMIN,
    )
    return area


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

def add_area_member(area, user_id, role, added_by):
    _require_manager(area, added_by)
    if role not in AreasMember.Role.values:
        raise ValidationError({'detail': 'Invalid role. Must be "member" or "admin"'})

    user = _get_user(user_id)

    other = AreasMember.objects.filter(user=user).exclude(area=area).select_related('area').first()
    if other is not None:
        raise ValidationError({
            'detail': 'User is already a member of another department',
            'departmentName': other.area.name,
        })
    if AreasMember.objects.filter(area=area, user=user).exists():
        raise ValidationError({'detail': 'User is already a member'})

    with transaction.atomic():
        AreasMember.objects.create(area=area, user=user, role=role)
        exec_action(
            verb=VERB_AREA_MEMBER_ADD,
            actor=added_by,
            target=user,
            resource_type=ResourceType.AREA,
            resource_uid=area.uid,
            access_level=_access_for_role(role),
        )
        if role == AreasMember.Role.ADMIN:
            ensure_admin_subscriber(area, user, added_by)

    logger.info(f"User {user.id} added to department {area.uid} as {role} by {added_by.id}")
    return area


def remove_area_member(area, user_id, removed_by):
    """
    Remove a member. Removing the owner is a superadmin-only ownership
    transfer to the superadmin performing it.
    """
    _require_manager(area, removed_by)
    user = _get_user(user_id)

    if area.user_id == user.id:
        return _transfer_ownership(area, user, removed_by)

    membership = AreasMember.objects.filter(area=area, user=user).first()
    if membership is None:
        raise NotFound('User is not a member of this department')

    with transaction.atomic():
        membership.delete()
        exec_action(
            verb=VERB_AREA_MEMBER_REMOVE,
            actor=removed_by,
            target=user,
            resource_type=ResourceType.AREA,
            resource_uid=area.uid,
        )
        AreasSubscriber.objects.filter(area=area, user=user, source=AreasSubscriber.Source.ADMIN_ROLE).delete()

    logger.info(f"User {user.id} removed from department {area.uid} by {removed_by.id}")
    return area


def _transfer_ownership(area, old_owner, new_owner):
    if not is_superadmin(new_owner):
        raise PermissionDenied('Only admins can remove the area owner')

    with transaction.atomic():
        area.user = new_owner
        area.save(update_fields=['user', 'updated_at'])

        AreasMember.objects.filter(area=area, user=old_owner).delete()
        AreasSubscriber.objects.filter(area=area, user=old_owner, source=AreasSubscriber.Source.ADMIN_ROLE).delete()
        Permission.objects.filter(
            user=old_owner,
            resource_type=ResourceType.AREA,
            resource_uid=area.uid,
            propagation=Propagation.AREA_MEMBERSHIP,
        ).delete()

        Action.objects.create(
            actor=new_owner,
            verb='area_ownership_transfer',
            resource_type=ResourceType.AREA,
            resource_uid=area.uid,
            target_user=old_owner,
            metadata={
                'old_owner_email': old_owner.email,
                'new_owner_email': new_owner.email,
                'reason': 'admin_removal',
            },
        )

    logger.warning(
        f'Ownership transfer: department "{area.name}" ({area.uid}) transferred '
        f'from {old_owner.email} to {new_owner.email} by admin'
    )
    return area


def update_member_role(area, user_id, new_role, updated_by):
    _require_manager(area, updated_by)
    if new_role not in AreasMember.Role.values:
        raise ValidationError({'detail': 'Invalid role. Must be "member" or "admin"'})

    user = _get_user(user_id)
    membership = AreasMember.objects.filter(area=area, user=user).first()
    if membership is None:
        raise NotFound('User is not a member of this department')

    with transaction.atomic():
        membership.role = new_role
        membership.save(update_fields=['role', 'updated_at'])

        Permission.objects.filter(
            user=user,
            resource_type=ResourceType.AREA,
            resource_uid=area.uid,
            propagation=Propagation.AREA_MEMBERSHIP,
        ).update(access_level=_access_for_role(new_role))

        if new_role == AreasMember.Role.ADMIN:
            ensure_admin_subscriber(area, user, updated_by)
        else:
            AreasSubscriber.objects.filter(area=area, user=user, source=AreasSubscriber.Source.ADMIN_ROLE).delete()

    return area


def get_area_members(area):
    return AreasMember.objects.filter(area=area).select_related('user').order_by('created_at')


# ---------------------------------------------------------------------------
# Subscribers
# ---------------------------------------------------------------------------

def ensure_admin_subscriber(area, user, added_by):
    AreasSubscriber.objects.get_or_create(
        area=area,
        user=user,
        source=AreasSubscriber.Source.ADMIN_ROLE,
        defaults={'added_by': added_by},
    )


def get_area_subscribers(area):
    return AreasSubscriber.objects.filter(area=area).select_related('user').order_by('created_at')


def add_area_subscriber(area, user_id, added_by, source=AreasSubscriber.Source.MANUAL, retroactive=False):
    _require_manager(area, added_by)
    user = _get_user(user_id)

    if AreasSubscriber.objects.filter(area=area, user=user).exists():
        raise Conflict('User is already a subscriber')

    subscriber = AreasSubscriber.objects.create(area=area, user=user, added_by=added_by, source=source)

    if retroactive:
        # Imported lazily: tasks.services depends on this module.
        from tasks.services import subscribe_user_to_department_tasks
        count = subscribe_user_to_department_tasks(area, user)
        logger.info(f"Retroactively subscribed user {user.id} to {count} tasks of department {area.uid}")

    return subscriber


def remove_area_subscriber(area, user_id, removed_by, source=None):
    _require_manager(area, removed_by)

    subscriptions = AreasSubscriber.objects.filter(area=area, user_id=user_id)
    if source:
        subscriptions = subscriptions.filter(source=source)
    if not subscriptions.exists():
        raise NotFound('User is not a subscriber')

    if source is None:
        if not subscriptions.exclude(source=AreasSubscriber.Source.ADMIN_ROLE).exists():
            raise ValidationError({'detail': 'Cannot remove admin-role subscribers manually'})
        subscriptions = subscriptions.exclude(source=AreasSubscriber.Source.ADMIN_ROLE)

    subscriptions.delete()


def department_for_user(user):
    """The department the user is a member of, or None."""
    membership = AreasMember.objects.filter(user=user).select_related('area').first()
    return membership.area if membership else None
