# tasks/metrics.py

import datetime
import logging

from django.db.models import F, Q
from django.utils import timezone

from access.services import owned_or_assigned_tasks_q
from .models import Task
from .queries import user_timezone, user_today

logger = logging.getLogger(__name__)

SUGGESTED_LIMIT = 10
PENDING_OVER_DAYS = 30


def suggested_tasks_queryset(user):
    """
    Open tasks the user owns or is assigned to and that are not deferred into
    the future: highest priority first, then earliest due date, then project
    name.
    """
    now = timezone.now()
    return (
        Task.objects.filter(owned_or_assigned_tasks_q(user))
        .filter(status__in=Task.OPEN_STATUSES)
        .filter(Q(defer_until__isnull=True) | Q(defer_until__lte=now))
        .select_related('user', 'assigned_to', 'project')
        .prefetch_related('tags')
        .order_by(
            F('priority').desc(),
            F('due_date').asc(nulls_last=True),
            F('project__name').asc(nulls_last=True),
            'id',
        )
        .distinct()
    )


def get_task_metrics(user) -> dict:
    today = user_today(user)
    now = timezone.now()
    mine = Task.objects.filter(owned_or_assigned_tasks_q(user))
    open_tasks = mine.filter(status__in=Task.OPEN_STATUSES)

    suggested = suggested_tasks_queryset(user)

    week_start = today - datetime.timedelta(days=6)
    completed_dates = (
        mine.filter(status=Task.Status.DONE, completed_at__isnull=False)
        .filter(completed_at__gte=now - datetime.timedelta(days=8))
        .values_list('completed_at', flat=True)
    )
    tz = user_timezone(user)
    per_day = {}
    for completed_at in completed_dates:
        day = timezone.localtime(completed_at, tz).date()
        per_day[day] = per_day.get(day, 0) + 1

    weekly_completions = []
    for offset in range(7):
        day = week_start + datetime.timedelta(days=offset)
        weekly_completions.append({'date': day.isoformat(), 'count': per_day.get(day, 0)})

    return {
        'total_open_tasks': open_tasks.count(),
        'tasks_pending_over_month': open_tasks.filter(
            created_at__lt=now - datetime.timedelta(days=PENDING_OVER_DAYS)
        ).count(),
        'tasks_in_progress_count': mine.filter(status=Task.Status.IN_PROGRESS).count(),
        'tasks_due_today_count': open_tasks.filter(due_date=today).count(),
        'today_plan_tasks_count': open_tasks.filter(today=True).count(),
        'suggested_tasks_count': suggested.count(),
        'tasks_completed_today_count': per_day.get(today, 0),
        'weekly_completions': weekly_completions,
        'suggested_tasks': list(suggested[:SUGGESTED_LIMIT]),
    }
