# tasks/services.py
"""
Task domain operations.

Views and serializers validate input; everything that touches more than one
row (permissions, subscriptions, notifications, recurring instances) lives
here so the API and the background workers share one code path.
"""

import datetime
import logging
from typing import List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from access.models import AccessLevel, Permission, Propagation, ResourceType
from access.actions import collect_subtree_uids
from access.services import can_delete_task, is_superadmin
from api.exceptions import Conflict
from areas.models import Area, AreasMember, AreasSubscriber
from notifications import services as notifications
from .cache import occurrence_cache
from .models import RecurringCompletion, Tag, Task, TaskSubscriber
from .recurrence import calculate_next_due_date, expand_occurrences, occurrences_in_window, rule_from_task

logger = logging.getLogger(__name__)

User = get_user_model()

CRITICAL_TASK_MESSAGE = 'Critical tasks must have a due date and assignee'
DELETE_FORBIDDEN_MESSAGE = (
    'You are not allowed to delete this task. '
    'Please contact the creator if you want to make this change.'
)

RECURRENCE_FIELDS = (
    'recurrence_type',
    'recurrence_interval',
    'recurrence_end_date',
    'recurrence_weekday',
    'recurrence_weekdays',
    'recurrence_month_day',
    'recurrence_week_of_month',
    'completion_based',
)

# Fields copied from a template to each generated instance
INSTANCE_FIELDS = ('name', 'note', 'user_id', 'assigned_to_id', 'project_id', 'priority')

MAX_ITERATIONS = 50


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_critical_priority(data: dict, existing: Optional[Task] = None):
    """
    Critical tasks need a due date and an assignee. `data` holds the new
    values; anything missing from it falls back to the existing task.
    """
    priority = data.get('priority', existing.priority if existing else None)
    if priority != Task.Priority.CRITICAL:
        return

    due_date = data['due_date'] if 'due_date' in data else (existing.due_date if existing else None)
    if 'assigned_to' in data:
        assigned_to = data['assigned_to']
    else:
        assigned_to = existing.assigned_to if existing else None

    if not due_date or not assigned_to:
        raise ValidationError({'detail': CRITICAL_TASK_MESSAGE})


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

def _grant_subscription_permission(task, user, granted_by):
    """Subscribers can read the task. An existing grant is kept as is."""
    existing = Permission.objects.filter(
        user=user, resource_type=ResourceType.TASK, resource_uid=task.uid
    ).first()
    if existing is not None:
        return
    Permission.objects.create(
        user=user,
        resource_type=ResourceType.TASK,
        resource_uid=task.uid,
        access_level=AccessLevel.READ_ONLY,
        propagation=Propagation.SUBSCRIPTION,
        granted_by=granted_by,
    )


def subscribe_user(task, user, actor):
    if TaskSubscriber.objects.filter(task=task, user=user).exists():
        raise Conflict('User is already subscribed to this task')

    with transaction.atomic():
        TaskSubscriber.objects.create(task=task, user=user)
        if user.id not in (task.user_id, task.assigned_to_id):
            _grant_subscription_permission(task, user, actor)

    logger.info(f"User {user.id} subscribed to task {task.uid} by {actor.id}")
    return task


def unsubscribe_user(task, user, actor):
    subscription = TaskSubscriber.objects.filter(task=task, user=user).first()
    if subscription is None:
        raise NotFound('User is not subscribed to this task')

    with transaction.atomic():
        subscription.delete()
        Permission.objects.filter(
            user=user,
            resource_type=ResourceType.TASK,
            resource_uid=task.uid,
            propagation=Propagation.SUBSCRIPTION,
        ).delete()

    logger.info(f"User {user.id} unsubscribed from task {task.uid} by {actor.id}")
    return task


def is_user_subscribed(task, user) -> bool:
    return TaskSubscriber.objects.filter(task=task, user=user).exists()


def _department_of(user) -> Optional[Area]:
    membership = AreasMember.objects.filter(user=user).select_related('area').first()
    return membership.area if membership else None


def subscribe_department_admins(task) -> int:
    """
    Subscribe the subscribers of the owner's department (admins and manual
    subscribers) to a new task. Failures are logged, never raised.
    """
    try:
        area = _department_of(task.user)
        if area is None:
            return 0

        user_ids = set(AreasSubscriber.objects.filter(area=area).values_list('user_id', flat=True))
        user_ids.discard(task.user_id)
        already = set(TaskSubscriber.objects.filter(task=task).values_list('user_id', flat=True))

        count = 0
        for user in User.objects.filter(id__in=user_ids - already):
            TaskSubscriber.objects.create(task=task, user=user)
            if user.id != task.assigned_to_id:
                _grant_subscription_permission(task, user, task.user)
            count += 1
        return count
    except Exception:
        logger.exception(f"Error subscribing department admins to task {task.uid}")
        return 0


def subscribe_user_to_department_tasks(area, user) -> int:
    """Subscribe `user` to the existing tasks owned by the department's members."""
    member_ids = set(AreasMember.objects.filter(area=area).values_list('user_id', flat=True))
    member_ids.add(area.user_id)
    member_ids.discard(user.id)

    already = TaskSubscriber.objects.filter(user=user).values('task_id')
    tasks = Task.objects.filter(user_id__in=member_ids).exclude(id__in=already)

    count = 0
    for task in tasks:
        TaskSubscriber.objects.create(task=task, user=user)
        if user.id != task.assigned_to_id:
            _grant_subscription_permission(task, user, area.user)
        count += 1
    return count


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------

def _grant_assignment_permission(task, assignee, granted_by):
    Permission.objects.update_or_create(
        user=assignee,
        resource_type=ResourceType.TASK,
        resource_uid=task.uid,
        defaults={
            'access_level': AccessLevel.READ_WRITE,
            'propagation': Propagation.ASSIGNMENT,
            'granted_by': granted_by,
        },
    )


def _revoke_assignment_permission(task, user_id):
    Permission.objects.filter(
        user_id=user_id,
        resource_type=ResourceType.TASK,
        resource_uid=task.uid,
        propagation=Propagation.ASSIGNMENT,
    ).delete()


def _check_can_assign(task, actor):
    if task.user_id != actor.id and not is_superadmin(actor):
        raise PermissionDenied('Only the task owner can assign this task.')


def _check_can_unassign(task, actor):
    if task.assigned_to_id is None:
        raise ValidationError({'detail': 'Task is not assigned to anyone.'})
    if actor.id not in (task.user_id, task.assigned_to_id) and not is_superadmin(actor):
        raise PermissionDenied('Only the task owner or the assignee can unassign this task.')


def assign_task(task, assignee, actor):
    """Owner or superadmin only."""
    _check_can_assign(task, actor)
    if not assignee.is_active:
        raise ValidationError({'detail': 'Cannot assign a task to an inactive user.'})

    previous = task.assigned_to
    if previous is not None and previous.id == assignee.id:
        return task

    with transaction.atomic():
        task.assigned_to = assignee
        task.save(update_fields=['assigned_to', 'updated_at'])
        if previous is not None:
            _revoke_assignment_permission(task, previous.id)
        if assignee.id != task.user_id:
            _grant_assignment_permission(task, assignee, actor)

    logger.info(f"Task {task.uid} assigned to user {assignee.id} by {actor.id}")
    notifications.notify_assignment(task, assignee, actor)
    if previous is not None:
        notifications.notify_unassignment(task, previous, actor)
    notifications.notify_subscribers(task, notifications.CHANGE_ASSIGNMENT, actor)
    return task


def unassign_task(task, actor):
    """Owner, current assignee or superadmin."""
    _check_can_unassign(task, actor)
    previous = task.assigned_to
    if task.priority == Task.Priority.CRITICAL:
        raise ValidationError({'detail': CRITICAL_TASK_MESSAGE})

    with transaction.atomic():
        task.assigned_to = None
        task.save(update_fields=['assigned_to', 'updated_at'])
        _revoke_assignment_permission(task, previous.id)

    logger.info(f"Task {task.uid} unassigned from user {previous.id} by {actor.id}")
    notifications.notify_unassignment(task, previous, actor)
    notifications.notify_subscribers(task, notifications.CHANGE_ASSIGNMENT, actor)
    return task


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------

def create_task(user, data: dict) -> Task:
    """
    Create a task owned by `user`. The assignee defaults to the owner only
    when `assigned_to` is absent from the payload.
    """
    data = dict(data)
    tags = data.pop('tags', None)
    if 'assigned_to' not in data:
        data['assigned_to'] = user

    validate_critical_priority(data)

    with transaction.atomic():
        task = Task.objects.create(user=user, **data)
        if tags:
            task.tags.set(tags)
        if task.assigned_to_id and task.assigned_to_id != user.id:
            _grant_assignment_permission(task, task.assigned_to, user)
        if task.status == Task.Status.DONE and task.completed_at is None:
            task.completed_at = timezone.now()
            task.save(update_fields=['completed_at'])

    subscribe_department_admins(task)

    if task.assigned_to_id and task.assigned_to_id != user.id:
        notifications.notify_assignment(task, task.assigned_to, user)

    logger.info(f"Task {task.uid} created by user {user.id}")
    return task


def _describe_field(name: str) -> str:
    return name.replace('_', ' ')


def update_task(task, data: dict, actor) -> Task:
    """
    Apply a partial update. Assignment and status changes go through their
    dedicated handlers so permissions, recurrence and notifications follow.
    """
    data = dict(data)
    tags = data.pop('tags', None)
    update_parent = data.pop('update_parent_recurrence', False)
    if task.recurring_parent_id and not update_parent:
        # Instances never carry a rule of their own.
        for name in RECURRENCE_FIELDS:
            data.pop(name, None)

    validate_critical_priority(data, existing=task)

    new_assignee = data.pop('assigned_to', task.assigned_to)
    assignee_changed = (new_assignee.id if new_assignee else None) != task.assigned_to_id
    if assignee_changed:
        if new_assignee is None:
            _check_can_unassign(task, actor)
        else:
            _check_can_assign(task, actor)

    old_status = task.status
    changed = [name for name, value in data.items() if getattr(task, name) != value]

    with transaction.atomic():
        for name, value in data.items():
            setattr(task, name, value)
        if 'status' in data and data['status'] != old_status:
            _apply_completion_timestamp(task, old_status)
        task.save()
        if tags is not None:
            task.tags.set(tags)

        if update_parent and task.recurring_parent_id:
            update_parent_recurrence(task, {name: data[name] for name in RECURRENCE_FIELDS if name in data})

    if assignee_changed:
        if new_assignee is None:
            unassign_task(task, actor)
        else:
            assign_task(task, new_assignee, actor)

    if task.status != old_status:
        handle_status_change(task, old_status, actor)

    other_fields = [name for name in changed if name != 'status']
    if other_fields:
        details = {'field': _describe_field(other_fields[0])} if len(other_fields) == 1 else {}
        notifications.notify_subscribers(task, notifications.CHANGE_UPDATE, actor, details)
    return task


def _apply_completion_timestamp(task, old_status):
    if task.status == Task.Status.DONE:
        task.completed_at = task.completed_at or timezone.now()
    elif old_status == Task.Status.DONE:
        task.completed_at = None


def handle_status_change(task, old_status, actor):
    """
    Side effects of a status change: recurring bookkeeping and
    notifications. Subtasks and their parent are not synchronised.
    """
    if task.status == Task.Status.DONE and old_status != Task.Status.DONE:
        record_recurring_completion(task)
        if task.assigned_to_id and task.assigned_to_id != task.user_id:
            notifications.notify_task_completion(task, actor)

    notifications.notify_subscribers(
        task,
        notifications.CHANGE_STATUS,
        actor,
        {'old_status': old_status, 'new_status': task.status},
    )


def delete_task(task, actor):
    if not can_delete_task(actor, task):
        raise PermissionDenied(DELETE_FORBIDDEN_MESSAGE)

    subtree = collect_subtree_uids([task.id])
    instances = list(task.recurring_instances.values_list('uid', flat=True))
    with transaction.atomic():
        Permission.objects.filter(resource_type=ResourceType.TASK, resource_uid__in=subtree + instances).delete()
        # Instances cascade through recurring_parent.
        task.delete()

    logger.info(
        f"Task {task.uid} deleted by user {actor.id} "
        f"({len(subtree) - 1} subtasks, {len(instances)} recurring instances)"
    )


# ---------------------------------------------------------------------------
# Recurring tasks
# ---------------------------------------------------------------------------

def _template_of(task) -> Optional[Task]:
    if task.recurring_parent_id:
        return task.recurring_parent
    if task.is_recurring_template:
        return task
    return None


def record_recurring_completion(task) -> Optional[RecurringCompletion]:
    """
    Log the completion of a template or one of its instances. For
    completion-based templates this also creates the next instance.
    """
    template = _template_of(task)
    if template is None:
        return None

    completed_at = task.completed_at or timezone.now()
    completion = RecurringCompletion.objects.create(
        task=template,
        instance=task if task.id != template.id else None,
        original_due_date=task.due_date,
        completed_at=completed_at,
        skipped=False,
    )

    if template.completion_based:
        latest = template.recurring_instances.order_by('-due_date', '-id').first()
        if latest is None or latest.id == task.id:
            create_next_completion_instance(template, timezone.localdate(completed_at))
    return completion


def _build_instance(template, due_date) -> Task:
    values = {name: getattr(template, name) for name in INSTANCE_FIELDS}
    return Task(recurring_parent=template, due_date=due_date, **values)


def _create_instance(template, due_date) -> Optional[Task]:
    """Create one instance; None when one already exists for that date."""
    if Task.objects.filter(recurring_parent=template, due_date=due_date).exists():
        return None
    try:
        with transaction.atomic():
            instance = _build_instance(template, due_date)
            instance.save()
            instance.tags.set(template.tags.all())
    except IntegrityError:
        # Created concurrently by another worker.
        return None

    if instance.assigned_to_id and instance.assigned_to_id != instance.user_id:
        _grant_assignment_permission(instance, instance.assigned_to, template.user)
    for user_id in template.subscriptions.values_list('user_id', flat=True):
        TaskSubscriber.objects.get_or_create(task=instance, user_id=user_id)
    return instance


def create_next_completion_instance(template, completed_on: datetime.date) -> Optional[Task]:
    rule = rule_from_task(template)
    next_date = calculate_next_due_date(rule, completed_on)
    if next_date is None:
        logger.info(f"Recurring task {template.uid} has ended; no next instance")
        return None
    return _create_instance(template, next_date)


def generate_recurring_instances(template, today: Optional[datetime.date] = None) -> List[Task]:
    """
    Materialise the due-based instances of `template` falling between today
    and the lookahead horizon. The template is the first occurrence itself;
    past occurrences are not backfilled. Idempotent.
    """
    if not template.is_recurring_template or template.completion_based:
        return []
    if template.due_date is None or template.status == Task.Status.ARCHIVED:
        return []

    today = today or timezone.localdate()
    horizon = today + datetime.timedelta(days=settings.TASKDESK_RECURRENCE_LOOKAHEAD_DAYS)
    rule = rule_from_task(template)

    occurrences = occurrence_cache.get_or_compute(
        rule,
        template.due_date,
        lambda: occurrences_in_window(rule, template.due_date, today, horizon),
        until=horizon,
        window_start=today,
    )

    created = []
    for due_date in occurrences:
        if due_date == template.due_date:
            continue
        instance = _create_instance(template, due_date)
        if instance is not None:
            created.append(instance)

    if created:
        logger.info(f"Generated {len(created)} instances for recurring task {template.uid}")
    return created


def next_iterations(task, start_from: Optional[datetime.date] = None, count: int = 5) -> List[datetime.date]:
    template = _template_of(task) or task
    rule = rule_from_task(template)
    if not rule.is_recurring:
        return []

    count = max(1, min(count, MAX_ITERATIONS))
    anchor = start_from or task.due_date or timezone.localdate()
    return occurrence_cache.get_or_compute(
        rule,
        anchor,
        lambda: expand_occurrences(rule, anchor, count=count),
        count=count,
    )


def update_parent_recurrence(instance, recurrence_data: dict) -> Optional[Task]:
    """
    Apply recurrence fields edited on an instance to its template and drop
    the template's future, untouched instances so they are regenerated.
    """
    template = instance.recurring_parent
    if template is None or not recurrence_data:
        return template

    for name, value in recurrence_data.items():
        setattr(template, name, value)
    template.save()

    # The instance itself keeps recurrence 'none'.
    for name in recurrence_data:
        setattr(instance, name, Task._meta.get_field(name).get_default())
    instance.save()

    stale = template.recurring_instances.filter(
        due_date__gt=timezone.localdate(),
        status=Task.Status.NOT_STARTED,
    ).exclude(id=instance.id)
    removed = stale.count()
    stale.delete()
    logger.info(f"Recurrence of template {template.uid} updated from instance {instance.uid}; {removed} future instances removed")
    return template


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

def resolve_tags(user, names) -> List[Tag]:
    """Tags of `user` with the given names, created as needed."""
    tags = []
    for name in names:
        name = name.strip()
        if not name:
            continue
        tag, _ = Tag.objects.get_or_create(user=user, name=name)
        tags.append(tag)
    return tags
