# notifications/services.py
"""
In-app notifications.

Notifications are a side effect of task operations: failures are logged and
never propagate to the request that triggered them.
"""

import logging
from typing import Optional

from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)

TASK_ASSIGNED = 'task_assigned'
TASK_UNASSIGNED = 'task_unassigned'
ASSIGNED_TASK_COMPLETED = 'assigned_task_completed'
TASK_UPDATED_FOR_SUBSCRIBER = 'task_updated_for_subscriber'
TASK_STATUS_CHANGED_FOR_SUBSCRIBER = 'task_status_changed_for_subscriber'
TASK_ASSIGNMENT_CHANGED_FOR_SUBSCRIBER = 'task_assignment_changed_for_subscriber'

CHANGE_UPDATE = 'update'
CHANGE_STATUS = 'status'
CHANGE_ASSIGNMENT = 'assignment'

# Status value of a completed task (tasks.Task.Status.DONE)
STATUS_DONE = 2


def _channel_preferences(user, notification_type) -> dict:
    preferences = user.notification_preferences or {}
    channels = preferences.get(notification_type)
    return channels if isinstance(channels, dict) else {}


def should_send_in_app(user, notification_type) -> bool:
    """In-app notifications are on unless explicitly disabled."""
    return _channel_preferences(user, notification_type).get('inApp') is not False


def should_send_telegram(user, notification_type) -> bool:
    return _channel_preferences(user, notification_type).get('telegram') is True


def create_notification(user, notification_type, title, message, level=Notification.Level.INFO, data=None) -> Optional[Notification]:
    """
    Create a notification for `user` honouring their preferences. Returns
    None when the user disabled this type.
    """
    if not should_send_in_app(user, notification_type):
        logger.debug(f"User {user.id} disabled in-app notifications of type {notification_type}")
        return None

    sources = ['telegram'] if should_send_telegram(user, notification_type) else []
    return Notification.objects.create(
        user=user,
        type=notification_type,
        title=title,
        message=message,
        level=level,
        sources=sources,
        data=data or {},
        sent_at=timezone.now(),
    )


# ---------------------------------------------------------------------------
# Task notifications
# ---------------------------------------------------------------------------

def notify_assignment(task, assignee, assigned_by):
    if assignee is None or assignee.id == assigned_by.id:
        return None
    try:
        return create_notification(
            assignee,
            TASK_ASSIGNED,
            'Task assigned to you',
            f'{assigned_by.display_name} assigned you the task "{task.name}"',
            data={
                'taskUid': task.uid,
                'taskName': task.name,
                'assignedBy': assigned_by.display_name,
                'assignedById': assigned_by.id,
            },
        )
    except Exception:
        logger.exception(f"Error sending assignment notification for task {task.uid}")
        return None


def notify_unassignment(task, previous_assignee, unassigned_by):
    if previous_assignee is None or previous_assignee.id == unassigned_by.id:
        return None
    try:
        return create_notification(
            previous_assignee,
            TASK_UNASSIGNED,
            'Task unassigned',
            f'You were unassigned from "{task.name}"',
            data={
                'taskUid': task.uid,
                'taskName': task.name,
                'unassignedBy': unassigned_by.display_name,
                'unassignedById': unassigned_by.id,
            },
        )
    except Exception:
        logger.exception(f"Error sending unassignment notification for task {task.uid}")
        return None


def notify_task_completion(task, completed_by):
    """Tell the owner that someone else completed their task."""
    owner = task.user
    if owner.id == completed_by.id:
        return None
    try:
        return create_notification(
            owner,
            ASSIGNED_TASK_COMPLETED,
            'Assigned task completed',
            f'{completed_by.display_name} completed "{task.name}"',
            level=Notification.Level.SUCCESS,
            data={
                'taskUid': task.uid,
                'taskName': task.name,
                'completedBy': completed_by.display_name,
                'completedById': completed_by.id,
                'completedAt': task.completed_at.isoformat() if task.completed_at else None,
            },
        )
    except Exception:
        logger.exception(f"Error sending completion notification for task {task.uid}")
        return None


def _subscriber_message(change_type, task, actor, details):
    name = actor.display_name
    if change_type == CHANGE_STATUS:
        if details.get('new_status') == STATUS_DONE:
            message = f'{name} marked "{task.name}" as completed'
        else:
            message = f'{name} changed status of "{task.name}"'
        return TASK_STATUS_CHANGED_FOR_SUBSCRIBER, 'Subscribed task status changed', message

    if change_type == CHANGE_ASSIGNMENT:
        return (
            TASK_ASSIGNMENT_CHANGED_FOR_SUBSCRIBER,
            'Assignment changed on subscribed task',
            f'{name} changed assignment of "{task.name}"',
        )

    field = details.get('field')
    if field:
        message = f'{name} updated {field} in "{task.name}"'
    else:
        message = f'{name} updated "{task.name}"'
    return TASK_UPDATED_FOR_SUBSCRIBER, 'Subscribed task updated', message


def notify_subscribers(task, change_type, actor, details=None) -> int:
    """
    Notify the task's subscribers about a change. The actor, the owner and
    the assignee are skipped (they get their own notifications). Returns the
    number of notifications created.
    """
    details = details or {}
    sent = 0
    try:
        notification_type, title, message = _subscriber_message(change_type, task, actor, details)
        skip = {actor.id, task.user_id, task.assigned_to_id}
        for subscriber in task.subscribers.all():
            if subscriber.id in skip:
                continue
            data = {
                'taskUid': task.uid,
                'taskName': task.name,
                'changedBy': actor.display_name,
                'changedById': actor.id,
                'changeType': change_type,
            }
            data.update({key: value for key, value in details.items() if key != 'field'})
            if create_notification(subscriber, notification_type, title, message, data=data) is not None:
                sent += 1
    except Exception:
        logger.exception(f"Error notifying subscribers of task {task.uid}")
    return sent


# ---------------------------------------------------------------------------
# Read state
# ---------------------------------------------------------------------------

def mark_as_read(notification):
    if notification.read_at is None:
        notification.read_at = timezone.now()
        notification.save(update_fields=['read_at'])
    return notification


def mark_as_unread(notification):
    if notification.read_at is not None:
        notification.read_at = None
        notification.save(update_fields=['read_at'])
    return notification


def mark_all_as_read(user) -> int:
    return Notification.objects.filter(user=user, read_at__isnull=True).update(read_at=timezone.now())


def unread_count(user) -> int:
    return Notification.objects.filter(user=user, read_at__isnull=True).count()
