# search/services.py
"""
Universal search over tasks, projects, departments and tags.

Each entity type contributes its own filtered queryset; results are
concatenated in ENTITY_TYPES order and paginated across the whole list.
"""

import datetime
import logging
from typing import Dict, List, Optional

from django.db.models import Q
from django.utils import timezone

from access.services import actionable_tasks_q, visible_areas_q, visible_projects_q
from api.utils import parse_bool, parse_int
from areas.models import Area
from projects.models import Project
from tasks.models import Tag, Task
from tasks.queries import user_today

logger = logging.getLogger(__name__)

ENTITY_TYPES = ('Task', 'Project', 'Area', 'Tag')
DATE_RANGES = ('today', 'tomorrow', 'next_week', 'next_month')
RECURRING_VALUES = ('recurring', 'non_recurring', 'instances')
EXTRAS = ('recurring', 'overdue', 'has_content', 'deferred', 'has_tags', 'assigned_to_project')

PRIORITY_NAMES = {'low': 0, 'medium': 1, 'high': 2, 'critical': 3}

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def split_list(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(',') if item.strip()]


def date_range(name: str, today: datetime.date):
    """(start, end) inclusive for a named range, None when unknown."""
    if name == 'today':
        return today, today
    if name == 'tomorrow':
        tomorrow = today + datetime.timedelta(days=1)
        return tomorrow, tomorrow
    if name == 'next_week':
        return today, today + datetime.timedelta(days=7)
    if name == 'next_month':
        return today, today + datetime.timedelta(days=30)
    return None


class UniversalSearch:
    """
    Parameters: q, filters, priority, due, defer, tags, recurring, extras,
    excludeSubtasks, limit / offset. Filters that only make sense for
    tasks (defer, recurring, task extras) drop the other entity types.
    """

    def __init__(self, user, params):
        self.user = user
        self.today = user_today(user)
        self.query = (params.get('q') or '').strip()

        types = [name for name in split_list(params.get('filters')) if name in ENTITY_TYPES]
        self.types = types or list(ENTITY_TYPES)

        priority = (params.get('priority') or '').strip().lower()
        self.priority = PRIORITY_NAMES.get(priority)
        self.due = params.get('due') if params.get('due') in DATE_RANGES else None
        self.defer = params.get('defer') if params.get('defer') in DATE_RANGES else None
        self.tags = split_list(params.get('tags'))
        self.recurring = params.get('recurring') if params.get('recurring') in RECURRING_VALUES else None
        self.extras = [name for name in split_list(params.get('extras')) if name in EXTRAS]
        self.exclude_subtasks = parse_bool(params.get('excludeSubtasks'))

        self.limit = parse_int(params.get('limit'), minimum=1, maximum=MAX_LIMIT)
        self.offset = parse_int(params.get('offset'), minimum=0)

    @property
    def paginated(self) -> bool:
        return self.limit is not None or self.offset is not None

    @property
    def task_only(self) -> bool:
        task_extras = set(self.extras) - {'has_tags', 'has_content'}
        return bool(self.defer or self.recurring or task_extras)

    # -- per-type querysets --------------------------------------------------

    def tasks(self):
        queryset = Task.objects.filter(actionable_tasks_q(self.user)).select_related('project')
        if self.query:
            queryset = queryset.filter(Q(name__icontains=self.query) | Q(note__icontains=self.query))
        if self.priority is not None:
            queryset = queryset.filter(priority=self.priority)
        if self.due:
            start, end = date_range(self.due, self.today)
            queryset = queryset.filter(due_date__gte=start, due_date__lte=end)
        if self.defer:
            start, end = date_range(self.defer, self.today)
            queryset = queryset.filter(defer_until__date__gte=start, defer_until__date__lte=end)
        if self.tags:
            queryset = queryset.filter(tags__name__in=self.tags)
        if self.exclude_subtasks:
            queryset = queryset.filter(parent_task__isnull=True, recurring_parent__isnull=True)

        if self.recurring == 'recurring':
            queryset = queryset.exclude(recurrence_type=Task.RecurrenceType.NONE).filter(recurring_parent__isnull=True)
        elif self.recurring == 'non_recurring':
            queryset = queryset.filter(recurrence_type=Task.RecurrenceType.NONE, recurring_parent__isnull=True)
        elif self.recurring == 'instances':
            queryset = queryset.filter(recurring_parent__isnull=False)

        for extra in self.extras:
            if extra == 'recurring':
                queryset = queryset.filter(
                    ~Q(recurrence_type=Task.RecurrenceType.NONE) | Q(recurring_parent__isnull=False)
                )
            elif extra == 'overdue':
                queryset = queryset.filter(due_date__lt=self.today, status__in=Task.OPEN_STATUSES)
            elif extra == 'has_content':
                queryset = queryset.exclude(note='')
            elif extra == 'deferred':
                queryset = queryset.filter(defer_until__gt=timezone.now())
            elif extra == 'has_tags':
                queryset = queryset.filter(tags__isnull=False)
            elif extra == 'assigned_to_project':
                queryset = queryset.filter(project__isnull=False)
        return queryset.distinct().order_by('-updated_at', '-id')

    def projects(self):
        queryset = Project.objects.filter(visible_projects_q(self.user))
        if self.query:
            queryset = queryset.filter(Q(name__icontains=self.query) | Q(description__icontains=self.query))
        if self.priority is not None:
            queryset = queryset.filter(priority=self.priority)
        if self.due:
            start, end = date_range(self.due, self.today)
            queryset = queryset.filter(due_date__gte=start, due_date__lte=end)
        if self.tags:
            queryset = queryset.filter(tags__name__in=self.tags)
        if 'has_tags' in self.extras:
            queryset = queryset.filter(tags__isnull=False)
        if 'has_content' in self.extras:
            queryset = queryset.exclude(description='')
        return queryset.distinct().order_by('name', 'id')

    def areas(self):
        if self.priority is not None or self.due or self.tags or self.extras:
            return Area.objects.none()
        queryset = Area.objects.filter(visible_areas_q(self.user))
        if self.query:
            queryset = queryset.filter(Q(name__icontains=self.query) | Q(description__icontains=self.query))
        return queryset.distinct().order_by('name', 'id')

    def tag_results(self):
        if self.priority is not None or self.due or self.extras:
            return Tag.objects.none()
        queryset = Tag.objects.filter(user=self.user)
        if self.query:
            queryset = queryset.filter(name__icontains=self.query)
        if self.tags:
            queryset = queryset.filter(name__in=self.tags)
        return queryset.order_by('name', 'id')

    def querysets(self):
        builders = {
            'Task': self.tasks,
            'Project': self.projects,
            'Area': self.areas,
            'Tag': self.tag_results,
        }
        types = ['Task'] if self.task_only else self.types
        return [(name, builders[name]()) for name in ENTITY_TYPES if name in types and name in self.types]

    # -- results -------------------------------------------------------------

    def run(self) -> Dict:
        querysets = self.querysets()
        limit = self.limit or DEFAULT_LIMIT
        offset = self.offset or 0

        results: List[Dict] = []
        total = 0
        skip = offset
        for name, queryset in querysets:
            count = queryset.count()
            total += count
            if skip >= count:
                skip -= count
                continue
            remaining = limit - len(results)
            if remaining <= 0:
                continue
            for obj in queryset[skip:skip + remaining]:
                results.append(serialize_result(name, obj))
            skip = 0

        payload = {'results': results}
        if self.paginated:
            payload['pagination'] = {
                'total': total,
                'limit': limit,
                'offset': offset,
                'hasMore': offset + len(results) < total,
            }
        logger.debug(f"Search '{self.query}' by user {self.user.id}: {total} results")
        return payload


def _priority_name(value: Optional[int]) -> Optional[str]:
    for name, number in PRIORITY_NAMES.items():
        if number == value:
            return name
    return None


def serialize_result(entity_type: str, obj) -> Dict:
    if entity_type == 'Task':
        return {
            'type': 'Task',
            'uid': obj.uid,
            'name': obj.name,
            'description': obj.note,
            'priority': _priority_name(obj.priority),
            'status': Task.Status(obj.status).name.lower(),
            'due_date': obj.due_date.isoformat() if obj.due_date else None,
            'project_uid': obj.project.uid if obj.project_id else None,
        }
    if entity_type == 'Project':
        return {
            'type': 'Project',
            'uid': obj.uid,
            'name': obj.name,
            'description': obj.description,
            'priority': _priority_name(obj.priority),
            'status': obj.state,
        }
    if entity_type == 'Area':
        return {'type': 'Area', 'uid': obj.uid, 'name': obj.name, 'description': obj.description}
    return {'type': 'Tag', 'uid': obj.uid, 'name': obj.name}
