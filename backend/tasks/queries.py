# tasks/queries.py
"""
Query building for the task list endpoint.

TaskQuery turns the request's query parameters into a filtered, ordered
queryset; grouping and the virtual occurrences of recurring templates are
computed on top of the materialised rows.
"""

import datetime
import logging
from collections import OrderedDict
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.db.models import F, Q
from django.utils import timezone
from django.utils.dateparse import parse_date

from access.services import visible_tasks_q
from api.utils import parse_bool, parse_int
from .cache import occurrence_cache
from .models import Task
from .recurrence import MONTHLY_TYPES, occurrences_in_window, rule_from_task

logger = logging.getLogger(__name__)

TASK_TYPES = ('today', 'upcoming', 'completed', 'archived', 'next', 'inbox', 'someday', 'waiting', 'all')
DATE_FIELDS = ('due_date', 'created_at', 'completed_at')
ORDER_FIELDS = {
    'created_at': 'created_at',
    'updated_at': 'updated_at',
    'name': 'name',
    'priority': 'priority',
    'status': 'status',
    'due_date': 'due_date',
    'assigned': 'assigned_to__email',
}
PRIORITY_NAMES = {
    'low': Task.Priority.LOW,
    'medium': Task.Priority.MEDIUM,
    'high': Task.Priority.HIGH,
    'critical': Task.Priority.CRITICAL,
}

DEFAULT_MAX_DAYS = 7
MAX_MAX_DAYS = 366

GROUP_ASSIGNED_TO_ME = 'assigned_to_me'
GROUP_ASSIGNED_TO_OTHERS = 'assigned_to_others'
GROUP_SUBSCRIBED = 'subscribed'
NO_DATE = 'no_date'
NO_PROJECT = 'no_project'


def user_timezone(user) -> ZoneInfo:
    """The user's timezone, UTC when unset or unknown."""
    try:
        return ZoneInfo(getattr(user, 'timezone', None) or 'UTC')
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo('UTC')


def user_today(user) -> datetime.date:
    return timezone.localdate(timezone=user_timezone(user))


def parse_priority(value) -> Optional[int]:
    if value is None or value == '':
        return None
    value = str(value).strip().lower()
    if value in PRIORITY_NAMES:
        return PRIORITY_NAMES[value]
    number = parse_int(value)
    if number in Task.Priority.values:
        return number
    return None


class TaskQuery:
    """
    Filters understood by GET /tasks/:

    type, status, project, tag, priority, assigned_to_me, assigned_by_me,
    date_field + date_from / date_to, recurrence, order_by, groupBy,
    maxDays, limit / offset.
    """

    def __init__(self, user, params):
        self.user = user
        self.params = params
        self.today = user_today(user)
        self.type = params.get('type') if params.get('type') in TASK_TYPES else None
        self.max_days = parse_int(params.get('maxDays'), DEFAULT_MAX_DAYS, minimum=1, maximum=MAX_MAX_DAYS)
        self.limit = parse_int(params.get('limit'), minimum=1)
        self.offset = parse_int(params.get('offset'), minimum=0)

    @property
    def paginated(self) -> bool:
        return self.limit is not None or self.offset is not None

    def base_queryset(self):
        return (
            Task.objects.filter(visible_tasks_q(self.user))
            .select_related('user', 'assigned_to', 'project', 'parent_task', 'recurring_parent')
            .prefetch_related('tags', 'subscribers')
        )

    def queryset(self):
        queryset = self._filter_type(self.base_queryset())
        queryset = self._filter_request(queryset)
        return queryset.order_by(*self._ordering()).distinct()

    def results(self):
        """
        Returns (rows, pagination dict or None). Rows are Task instances; for
        the upcoming list they are merged with virtual occurrence dicts
        before pagination is applied.
        """
        queryset = self.queryset()
        if self.type != 'upcoming':
            if self.paginated:
                return self.paginate(queryset)
            return list(queryset), None

        tasks = list(queryset)
        rows = self._merge(tasks, self.virtual_occurrences(tasks))
        if self.paginated:
            return self.paginate(rows)
        return rows, None

    # -- filters -------------------------------------------------------------

    def _filter_request(self, queryset, dates=True):
        queryset = self._filter_status(queryset)
        queryset = self._filter_relations(queryset)
        if dates:
            queryset = self._filter_dates(queryset)
        return self._filter_recurrence(queryset)

    def _filter_type(self, queryset):
        today = self.today
        open_q = Q(status__in=Task.OPEN_STATUSES)

        if self.type == 'today':
            return queryset.filter(open_q).filter(
                Q(today=True) | Q(due_date__lte=today) | Q(status=Task.Status.IN_PROGRESS)
            )
        if self.type == 'upcoming':
            horizon = today + datetime.timedelta(days=self.max_days)
            return queryset.filter(open_q, due_date__gte=today, due_date__lte=horizon)
        if self.type == 'completed':
            return queryset.filter(status=Task.Status.DONE)
        if self.type == 'archived':
            return queryset.filter(status=Task.Status.ARCHIVED)
        if self.type == 'next':
            return queryset.filter(open_q, today=False).filter(
                Q(defer_until__isnull=True) | Q(defer_until__lte=timezone.now())
            )
        if self.type == 'inbox':
            return queryset.filter(open_q, project__isnull=True, due_date__isnull=True, parent_task__isnull=True)
        if self.type == 'someday':
            return queryset.filter(open_q, project__isnull=False, due_date__isnull=True, today=False)
        if self.type == 'waiting':
            return queryset.filter(status=Task.Status.WAITING)
        if self.type == 'all':
            return queryset

        # No type: open tasks unless a status filter says otherwise.
        if self.params.get('status'):
            return queryset
        return queryset.filter(open_q)

    def _filter_status(self, queryset):
        status = self.params.get('status')
        if status == 'pending':
            return queryset.filter(status__in=(Task.Status.NOT_STARTED, Task.Status.WAITING))
        if status == 'active':
            return queryset.filter(status__in=Task.OPEN_STATUSES)
        if status in ('completed', 'done'):
            return queryset.filter(status=Task.Status.DONE)
        if status == 'archived':
            return queryset.filter(status=Task.Status.ARCHIVED)
        return queryset

    def _filter_relations(self, queryset):
        params = self.params
        project = params.get('project')
        if project:
            queryset = queryset.filter(project__uid=project)

        tag = params.get('tag')
        if tag:
            queryset = queryset.filter(tags__name=tag)

        priority = parse_priority(params.get('priority'))
        if priority is not None:
            queryset = queryset.filter(priority=priority)

        if parse_bool(params.get('assigned_to_me')):
            queryset = queryset.filter(assigned_to=self.user)
        if parse_bool(params.get('assigned_by_me')):
            queryset = queryset.filter(user=self.user, assigned_to__isnull=False).exclude(assigned_to=self.user)
        return queryset

    def _filter_dates(self, queryset):
        field = self.params.get('date_field')
        if field not in DATE_FIELDS:
            return queryset

        date_from = parse_date(self.params.get('date_from') or '')
        date_to = parse_date(self.params.get('date_to') or '')
        lookup = field if field == 'due_date' else f'{field}__date'
        if date_from:
            queryset = queryset.filter(**{f'{lookup}__gte': date_from})
        if date_to:
            queryset = queryset.filter(**{f'{lookup}__lte': date_to})
        return queryset

    def _filter_recurrence(self, queryset):
        recurrence = self.params.get('recurrence')
        if not recurrence or recurrence == 'all':
            return queryset
        if recurrence == 'none':
            return queryset.filter(recurrence_type=Task.RecurrenceType.NONE, recurring_parent__isnull=True)
        types = MONTHLY_TYPES if recurrence == 'monthly' else (recurrence,)
        return queryset.filter(Q(recurrence_type__in=types) | Q(recurring_parent__recurrence_type__in=types))

    def _order(self):
        """(ORDER_FIELDS key or None, ascending)."""
        order_by = self.params.get('order_by') or ''
        field, _, direction = order_by.partition(':')
        if field in ORDER_FIELDS:
            return field, direction.lower() == 'asc'
        if self.type == 'upcoming':
            return 'due_date', True
        return None, False

    def _ordering(self) -> List:
        field, ascending = self._order()
        if field is None:
            return ['-created_at', '-id']

        expression = F(ORDER_FIELDS[field])
        if ascending:
            return [expression.asc(nulls_last=True), 'id']
        return [expression.desc(nulls_last=True), '-id']

    def _merge(self, tasks: List[Task], virtual: List[Dict]) -> List:
        """Real rows and virtual occurrences in one list, ordered like the queryset."""
        if not virtual:
            return tasks

        field, ascending = self._order()

        def sort_value(row):
            if isinstance(row, dict):
                task, due_date = row['template'], row['due_date']
            else:
                task, due_date = row, row.due_date
            if field == 'due_date':
                return due_date
            if field == 'assigned':
                return task.assigned_to.email if task.assigned_to_id else None
            return getattr(task, ORDER_FIELDS[field])

        # Nulls last in both directions; the sort is stable so ties keep queryset order.
        if ascending:
            return sorted(tasks + virtual, key=lambda row: (sort_value(row) is None, sort_value(row)))
        return sorted(tasks + virtual, key=lambda row: (sort_value(row) is not None, sort_value(row)), reverse=True)

    # -- pagination ----------------------------------------------------------

    def paginate(self, rows):
        """Returns (page, pagination dict) for a queryset or a list."""
        total = len(rows) if isinstance(rows, list) else rows.count()
        limit = self.limit or 20
        offset = self.offset or 0
        page = list(rows[offset:offset + limit])
        return page, {
            'total': total,
            'limit': limit,
            'offset': offset,
            'hasMore': offset + len(page) < total,
        }

    # -- virtual occurrences -------------------------------------------------

    def templates(self):
        """
        Due-based recurring templates matching the request's filters. The due
        window is left out; it applies to the occurrence dates instead.
        """
        queryset = (
            self.base_queryset()
            .filter(
                status__in=Task.OPEN_STATUSES,
                due_date__isnull=False,
                completion_based=False,
                recurring_parent__isnull=True,
            )
            .exclude(recurrence_type=Task.RecurrenceType.NONE)
        )
        queryset = self._filter_request(queryset, dates=self.params.get('date_field') != 'due_date')
        return queryset.distinct()

    def _virtual_window(self):
        start = self.today
        end = self.today + datetime.timedelta(days=self.max_days)
        if self.params.get('date_field') == 'due_date':
            date_from = parse_date(self.params.get('date_from') or '')
            date_to = parse_date(self.params.get('date_to') or '')
            if date_from and date_from > start:
                start = date_from
            if date_to and date_to < end:
                end = date_to
        return start, end

    def virtual_occurrences(self, tasks: List[Task]) -> List[Dict]:
        """
        Upcoming dates of visible due-based templates that have no
        materialised row yet, as (template, date) pairs.
        """
        if self.type != 'upcoming':
            return []

        window_start, window_end = self._virtual_window()
        if window_end < window_start:
            return []
        templates = list(self.templates())

        materialised = {(task.recurring_parent_id, task.due_date) for task in tasks if task.recurring_parent_id}
        existing = set(
            Task.objects.filter(
                recurring_parent__in=[template.id for template in templates],
                due_date__gte=window_start,
                due_date__lte=window_end,
            ).values_list('recurring_parent_id', 'due_date')
        )
        materialised |= existing

        virtual = []
        for template in templates:
            rule = rule_from_task(template)
            occurrences = occurrence_cache.get_or_compute(
                rule,
                template.due_date,
                lambda: occurrences_in_window(rule, template.due_date, window_start, window_end),
                until=window_end,
                window_start=window_start,
            )
            for due_date in occurrences:
                # The template is its own first occurrence.
                if due_date == template.due_date or (template.id, due_date) in materialised:
                    continue
                virtual.append({'template': template, 'due_date': due_date})

        virtual.sort(key=lambda item: (item['due_date'], item['template'].id))
        return virtual


def group_by_day(items: List[Dict]) -> Dict[str, List[Dict]]:
    """Serialized tasks grouped by ISO due date, dated groups first."""
    groups: Dict[str, List[Dict]] = OrderedDict()
    dated = sorted((item for item in items if item.get('due_date')), key=lambda item: item['due_date'])
    for item in dated:
        groups.setdefault(str(item['due_date']), []).append(item)
    undated = [item for item in items if not item.get('due_date')]
    if undated:
        groups[NO_DATE] = undated
    return groups


def group_by_project(items: List[Dict]) -> Dict[str, Dict]:
    groups: Dict[str, Dict] = OrderedDict()
    for item in items:
        project = item.get('project')
        key = project or NO_PROJECT
        if key not in groups:
            groups[key] = {'name': item.get('project_name') or '', 'tasks': []}
        groups[key]['tasks'].append(item)
    return groups


def group_by_involvement(tasks: List[Task], items: List[Dict], user) -> Dict[str, List[Dict]]:
    """
    Always returns the three groups; a task may be listed in several of
    them.
    """
    groups = OrderedDict((
        (GROUP_ASSIGNED_TO_ME, []),
        (GROUP_ASSIGNED_TO_OTHERS, []),
        (GROUP_SUBSCRIBED, []),
    ))
    for task, item in zip(tasks, items):
        if task.assigned_to_id == user.id:
            groups[GROUP_ASSIGNED_TO_ME].append(item)
        if task.user_id == user.id and task.assigned_to_id and task.assigned_to_id != user.id:
            groups[GROUP_ASSIGNED_TO_OTHERS].append(item)
        if any(subscriber.id == user.id for subscriber in task.subscribers.all()):
            groups[GROUP_SUBSCRIBED].append(item)
    return groups
