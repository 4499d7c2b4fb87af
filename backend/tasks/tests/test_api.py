# tasks/tests/test_api.py
"""
Task API Tests
==============

HTTP endpoints under /api/v1/tasks/ and /api/v1/tags/.

Test Categories:
----------------
1. List Tests - Types, status, filters, ordering, pagination, grouping
2. Upcoming Tests - Virtual occurrences of recurring templates
3. Detail Tests - Read / write / delete authorization
4. Action Tests - Assign, unassign, subscribe, subtasks, next iterations
5. Metrics Tests - Dashboard counters and suggestions
6. Attachment Tests - Upload limits and write access
7. Tag Tests - Per-user tags
"""

import datetime

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from access.models import AccessLevel, Permission, Propagation, ResourceType
from projects.models import Project
from tasks.models import Tag, Task, TaskAttachment, TaskSubscriber

User = get_user_model()

TASKS_URL = '/api/v1/tasks/'
TAGS_URL = '/api/v1/tags/'


def create_test_user(name: str) -> User:
    return User.objects.create_user(email=f"{name}@example.com", password="testpass123", first_name=name.capitalize())


def task_url(task, suffix=''):
    return f"{TASKS_URL}{task.uid}/{suffix}"


class TaskAPITestCase(APITestCase):

    def setUp(self):
        cache.clear()
        self.owner = create_test_user("owner")
        self.other = create_test_user("other")
        self.client.force_authenticate(user=self.owner)
        self.today = timezone.localdate()

    def make_task(self, name="Task", user=None, **fields):
        fields.setdefault('assigned_to', user or self.owner)
        return Task.objects.create(user=user or self.owner, name=name, **fields)

    def names(self, response):
        return sorted(item['name'] for item in response.data['tasks'])


# ===========================================================================
# LIST TESTS
# ===========================================================================

class TaskListTest(TaskAPITestCase):

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(TASKS_URL)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_default_list_shows_open_tasks_only(self):
        self.make_task("Open")
        self.make_task("Done", status=Task.Status.DONE)
        self.make_task("Archived", status=Task.Status.ARCHIVED)

        response = self.client.get(TASKS_URL)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.names(response), ["Open"])
        self.assertNotIn('pagination', response.data)

    def test_other_users_tasks_are_hidden(self):
        self.make_task("Mine")
        self.make_task("Theirs", user=self.other)

        response = self.client.get(TASKS_URL)

        self.assertEqual(self.names(response), ["Mine"])

    def test_shared_task_is_visible(self):
        task = self.make_task("Shared", user=self.other)
        Permission.objects.create(
            user=self.owner,
            resource_type=ResourceType.TASK,
            resource_uid=task.uid,
            access_level=AccessLevel.READ_ONLY,
            propagation=Propagation.DIRECT,
        )

        response = self.client.get(TASKS_URL)

        self.assertEqual(self.names(response), ["Shared"])

    def test_today_type(self):
        self.make_task("Flagged", today=True)
        self.make_task("Overdue", due_date=self.today - datetime.timedelta(days=2))
        self.make_task("Started", status=Task.Status.IN_PROGRESS)
        self.make_task("Later", due_date=self.today + datetime.timedelta(days=3))

        response = self.client.get(TASKS_URL, {'type': 'today'})

        self.assertEqual(self.names(response), ["Flagged", "Overdue", "Started"])

    def test_inbox_and_someday_types(self):
        project = Project.objects.create(user=self.owner, name="Garden")
        self.make_task("Loose")
        self.make_task("Parked", project=project)
        self.make_task("Scheduled", project=project, due_date=self.today)

        inbox = self.client.get(TASKS_URL, {'type': 'inbox'})
        someday = self.client.get(TASKS_URL, {'type': 'someday'})

        self.assertEqual(self.names(inbox), ["Loose"])
        self.assertEqual(self.names(someday), ["Parked"])

    def test_completed_type(self):
        self.make_task("Open")
        self.make_task("Done", status=Task.Status.DONE)

        response = self.client.get(TASKS_URL, {'type': 'completed'})

        self.assertEqual(self.names(response), ["Done"])

    def test_pending_status(self):
        self.make_task("Waiting", status=Task.Status.WAITING)
        self.make_task("New")
        self.make_task("Started", status=Task.Status.IN_PROGRESS)

        response = self.client.get(TASKS_URL, {'status': 'pending'})

        self.assertEqual(self.names(response), ["New", "Waiting"])

    def test_priority_and_tag_filters(self):
        tag = Tag.objects.create(user=self.owner, name="work")
        tagged = self.make_task("Tagged", priority=Task.Priority.HIGH)
        tagged.tags.add(tag)
        self.make_task("Plain", priority=Task.Priority.HIGH)

        by_priority = self.client.get(TASKS_URL, {'priority': 'high'})
        by_tag = self.client.get(TASKS_URL, {'tag': 'work'})

        self.assertEqual(self.names(by_priority), ["Plain", "Tagged"])
        self.assertEqual(self.names(by_tag), ["Tagged"])

    def test_assigned_by_me(self):
        self.make_task("Delegated", assigned_to=self.other)
        self.make_task("Own")

        response = self.client.get(TASKS_URL, {'assigned_by_me': 'true'})

        self.assertEqual(self.names(response), ["Delegated"])

    def test_due_date_range(self):
        self.make_task("In range", due_date=self.today + datetime.timedelta(days=1))
        self.make_task("Out of range", due_date=self.today + datetime.timedelta(days=10))

        response = self.client.get(TASKS_URL, {
            'date_field': 'due_date',
            'date_from': self.today.isoformat(),
            'date_to': (self.today + datetime.timedelta(days=2)).isoformat(),
        })

        self.assertEqual(self.names(response), ["In range"])

    def test_order_by_name(self):
        self.make_task("b")
        self.make_task("a")
        self.make_task("c")

        response = self.client.get(TASKS_URL, {'order_by': 'name:asc'})

        self.assertEqual([item['name'] for item in response.data['tasks']], ["a", "b", "c"])

    def test_pagination(self):
        for n in range(5):
            self.make_task(f"Task {n}")

        response = self.client.get(TASKS_URL, {'limit': 2, 'offset': 2})

        self.assertEqual(len(response.data['tasks']), 2)
        self.assertEqual(response.data['pagination'], {'total': 5, 'limit': 2, 'offset': 2, 'hasMore': True})

    def test_group_by_involvement(self):
        self.make_task("Delegated", assigned_to=self.other)
        self.make_task("Mine")
        watched = self.make_task("Watched", user=self.other, assigned_to=self.other)
        TaskSubscriber.objects.create(task=watched, user=self.owner)

        response = self.client.get(TASKS_URL, {'groupBy': 'involvement'})

        groups = response.data['groups']
        self.assertEqual([item['name'] for item in groups['assigned_to_me']], ["Mine"])
        self.assertEqual([item['name'] for item in groups['assigned_to_others']], ["Delegated"])
        self.assertEqual([item['name'] for item in groups['subscribed']], ["Watched"])

    def test_group_by_project(self):
        project = Project.objects.create(user=self.owner, name="Garden")
        self.make_task("Dig", project=project)
        self.make_task("Loose")

        response = self.client.get(TASKS_URL, {'groupBy': 'project'})

        groups = response.data['groups']
        self.assertEqual(groups[project.uid]['name'], "Garden")
        self.assertEqual([item['name'] for item in groups['no_project']['tasks']], ["Loose"])


# ===========================================================================
# UPCOMING TESTS
# ===========================================================================

class UpcomingTest(TaskAPITestCase):

    def test_virtual_occurrences_fill_the_window(self):
        template = self.make_task("Standup", due_date=self.today, recurrence_type=Task.RecurrenceType.DAILY)

        response = self.client.get(TASKS_URL, {'type': 'upcoming', 'maxDays': 3})

        tasks = response.data['tasks']
        self.assertEqual(len(tasks), 4)
        virtual = [item for item in tasks if item['is_virtual']]
        self.assertEqual(len(virtual), 3)
        first_date = (self.today + datetime.timedelta(days=1)).isoformat()
        self.assertEqual(virtual[0]['uid'], f"{template.uid}-{first_date}")
        self.assertEqual(virtual[0]['recurring_parent'], template.uid)

    def test_materialised_instances_are_not_duplicated(self):
        template = self.make_task("Standup", due_date=self.today, recurrence_type=Task.RecurrenceType.DAILY)
        self.make_task("Standup", due_date=self.today + datetime.timedelta(days=1), recurring_parent=template)

        response = self.client.get(TASKS_URL, {'type': 'upcoming', 'maxDays': 2})

        tasks = response.data['tasks']
        self.assertEqual(len(tasks), 3)
        self.assertEqual(len([item for item in tasks if item['is_virtual']]), 1)

    def test_request_filters_apply_to_virtual_occurrences(self):
        project = Project.objects.create(user=self.owner, name="Ops")
        self.make_task("Standup", due_date=self.today, recurrence_type=Task.RecurrenceType.DAILY,
                       project=project, priority=Task.Priority.LOW)

        unknown_project = self.client.get(TASKS_URL, {'type': 'upcoming', 'project': 'missing'})
        other_priority = self.client.get(TASKS_URL, {'type': 'upcoming', 'priority': 'high'})
        same_project = self.client.get(TASKS_URL, {'type': 'upcoming', 'project': project.uid, 'maxDays': 2})

        self.assertEqual(unknown_project.data['tasks'], [])
        self.assertEqual(other_priority.data['tasks'], [])
        self.assertEqual(len(same_project.data['tasks']), 3)

    def test_due_date_range_bounds_virtual_occurrences(self):
        self.make_task("Standup", due_date=self.today, recurrence_type=Task.RecurrenceType.DAILY)
        day_two = self.today + datetime.timedelta(days=2)

        response = self.client.get(TASKS_URL, {
            'type': 'upcoming',
            'date_field': 'due_date',
            'date_from': day_two.isoformat(),
            'date_to': day_two.isoformat(),
        })

        self.assertEqual([item['due_date'] for item in response.data['tasks']], [day_two.isoformat()])

    def test_pagination_covers_virtual_occurrences(self):
        self.make_task("Standup", due_date=self.today, recurrence_type=Task.RecurrenceType.DAILY)

        first = self.client.get(TASKS_URL, {'type': 'upcoming', 'maxDays': 3, 'limit': 2, 'offset': 0})
        second = self.client.get(TASKS_URL, {'type': 'upcoming', 'maxDays': 3, 'limit': 2, 'offset': 2})

        first_uids = [item['uid'] for item in first.data['tasks']]
        second_uids = [item['uid'] for item in second.data['tasks']]
        self.assertEqual(len(first_uids), 2)
        self.assertEqual(len(second_uids), 2)
        self.assertFalse(set(first_uids) & set(second_uids))
        self.assertEqual(first.data['pagination'], {'total': 4, 'limit': 2, 'offset': 0, 'hasMore': True})
        self.assertEqual(second.data['pagination'], {'total': 4, 'limit': 2, 'offset': 2, 'hasMore': False})
        self.assertEqual(
            [item['due_date'] for item in first.data['tasks'] + second.data['tasks']],
            [(self.today + datetime.timedelta(days=n)).isoformat() for n in range(4)],
        )

    def test_template_anchored_years_ago_still_expands(self):
        self.make_task("Standup", due_date=self.today - datetime.timedelta(days=1500),
                       recurrence_type=Task.RecurrenceType.DAILY)

        response = self.client.get(TASKS_URL, {'type': 'upcoming', 'maxDays': 3})

        self.assertEqual(
            [item['due_date'] for item in response.data['tasks']],
            [(self.today + datetime.timedelta(days=n)).isoformat() for n in range(4)],
        )
        self.assertTrue(all(item['is_virtual'] for item in response.data['tasks']))

    def test_recurrence_fields_on_an_instance_are_ignored(self):
        template = self.make_task("Standup", due_date=self.today, recurrence_type=Task.RecurrenceType.WEEKLY)
        instance = self.make_task("Standup", due_date=self.today + datetime.timedelta(days=7),
                                  recurring_parent=template)

        response = self.client.patch(task_url(instance), {'recurrence_type': 'daily'}, format='json')
        upcoming = self.client.get(TASKS_URL, {'type': 'upcoming', 'maxDays': 3})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        instance.refresh_from_db()
        self.assertEqual(instance.recurrence_type, Task.RecurrenceType.NONE)
        self.assertEqual([item['name'] for item in upcoming.data['tasks']], ["Standup"])

    def test_group_by_day(self):
        self.make_task("Tomorrow", due_date=self.today + datetime.timedelta(days=1))

        response = self.client.get(TASKS_URL, {'type': 'upcoming', 'groupBy': 'day'})

        key = (self.today + datetime.timedelta(days=1)).isoformat()
        self.assertEqual([item['name'] for item in response.data['groups'][key]], ["Tomorrow"])


# ===========================================================================
# DETAIL TESTS
# ===========================================================================

class TaskDetailTest(TaskAPITestCase):

    def test_create_task(self):
        response = self.client.post(TASKS_URL, {
            'name': 'New task',
            'priority': 'high',
            'tag_names': ['work', 'urgent'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['priority'], Task.Priority.HIGH)
        self.assertEqual(response.data['assigned_to'], self.owner.id)
        self.assertEqual(sorted(response.data['tags']), ['urgent', 'work'])

    def test_create_critical_without_due_date(self):
        response = self.client.post(TASKS_URL, {'name': 'Outage', 'priority': 'critical'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'Critical tasks must have a due date and assignee')

    def test_invalid_recurrence_is_rejected(self):
        response = self.client.post(TASKS_URL, {
            'name': 'Bad rule',
            'recurrence_type': 'weekly',
            'recurrence_interval': 0,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_subtask_of_invisible_parent_is_rejected(self):
        parent = self.make_task("Hidden", user=self.other)

        response = self.client.post(TASKS_URL, {'name': 'Child', 'parent_task': parent.uid}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invisible_task_is_not_found(self):
        task = self.make_task("Hidden", user=self.other)
        response = self.client.get(task_url(task))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_read_only_share_cannot_edit(self):
        task = self.make_task("Shared", user=self.other)
        Permission.objects.create(
            user=self.owner,
            resource_type=ResourceType.TASK,
            resource_uid=task.uid,
            access_level=AccessLevel.READ_ONLY,
            propagation=Propagation.DIRECT,
        )

        read = self.client.get(task_url(task))
        write = self.client.patch(task_url(task), {'name': 'Renamed'}, format='json')

        self.assertEqual(read.status_code, status.HTTP_200_OK)
        self.assertEqual(read.data['access'], AccessLevel.READ_ONLY)
        self.assertEqual(write.status_code, status.HTTP_403_FORBIDDEN)

    def test_patch_status_by_name(self):
        task = self.make_task("Finish me")

        response = self.client.patch(task_url(task), {'status': 'done'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        task.refresh_from_db()
        self.assertEqual(task.status, Task.Status.DONE)
        self.assertIsNotNone(task.completed_at)

    def test_assignee_cannot_delete(self):
        task = self.make_task("Delegated", user=self.other, assigned_to=self.owner)

        response = self.client.delete(task_url(task))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Task.objects.filter(id=task.id).exists())

    def test_owner_deletes(self):
        task = self.make_task("Mine")

        response = self.client.delete(task_url(task))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Task successfully deleted')
        self.assertFalse(Task.objects.filter(id=task.id).exists())


# ===========================================================================
# ACTION TESTS
# ===========================================================================

class TaskActionTest(TaskAPITestCase):

    def test_assign_and_unassign(self):
        task = self.make_task("Delegate me")

        assigned = self.client.post(task_url(task, 'assign/'), {'user_id': self.other.id}, format='json')
        unassigned = self.client.post(task_url(task, 'unassign/'))

        self.assertEqual(assigned.status_code, status.HTTP_200_OK)
        self.assertEqual(assigned.data['assigned_to'], self.other.id)
        self.assertEqual(unassigned.status_code, status.HTTP_200_OK)
        self.assertIsNone(unassigned.data['assigned_to'])

    def test_assign_unknown_user(self):
        task = self.make_task("Delegate me")
        response = self.client.post(task_url(task, 'assign/'), {'user_id': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_subscribe_defaults_to_requester(self):
        task = self.make_task("Watch me", user=self.other, assigned_to=self.other)
        Permission.objects.create(
            user=self.owner,
            resource_type=ResourceType.TASK,
            resource_uid=task.uid,
            access_level=AccessLevel.READ_ONLY,
            propagation=Propagation.DIRECT,
        )

        first = self.client.post(task_url(task, 'subscribe/'), {}, format='json')
        second = self.client.post(task_url(task, 'subscribe/'), {}, format='json')

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual([user['id'] for user in first.data['subscribers']], [self.owner.id])
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(second.data['detail'], 'User is already subscribed to this task')

    def test_unsubscribe_when_not_subscribed(self):
        task = self.make_task("Mine")
        response = self.client.post(task_url(task, 'unsubscribe/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_subtasks(self):
        parent = self.make_task("Parent")
        self.make_task("Child", parent_task=parent)

        response = self.client.get(task_url(parent, 'subtasks/'))

        self.assertEqual([item['name'] for item in response.data['subtasks']], ["Child"])

    def test_next_iterations(self):
        task = self.make_task(
            "Weekly review",
            due_date=datetime.date(2025, 1, 6),
            recurrence_type=Task.RecurrenceType.WEEKLY,
        )

        response = self.client.get(task_url(task, 'next-iterations/'), {'count': 2, 'startFromDate': '2025-01-06'})

        self.assertEqual(response.data['iterations'], [{'due_date': '2025-01-13'}, {'due_date': '2025-01-20'}])

    def test_next_iterations_rejects_bad_date(self):
        task = self.make_task("Weekly review", recurrence_type=Task.RecurrenceType.WEEKLY)
        response = self.client.get(task_url(task, 'next-iterations/'), {'startFromDate': 'soon'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


# ===========================================================================
# METRICS TESTS
# ===========================================================================

class TaskMetricsTest(TaskAPITestCase):

    def test_metrics(self):
        self.make_task("Due today", due_date=self.today, priority=Task.Priority.HIGH)
        self.make_task("Started", status=Task.Status.IN_PROGRESS)
        self.make_task("Planned", today=True)
        self.make_task("Deferred", defer_until=timezone.now() + datetime.timedelta(days=3))
        self.make_task("Finished", status=Task.Status.DONE, completed_at=timezone.now())

        response = self.client.get(f"{TASKS_URL}metrics/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data
        self.assertEqual(data['total_open_tasks'], 4)
        self.assertEqual(data['tasks_in_progress_count'], 1)
        self.assertEqual(data['tasks_due_today_count'], 1)
        self.assertEqual(data['today_plan_tasks_count'], 1)
        self.assertEqual(data['tasks_completed_today_count'], 1)
        self.assertEqual(data['suggested_tasks_count'], 3)
        self.assertEqual(data['suggested_tasks'][0]['name'], "Due today")
        self.assertEqual(len(data['weekly_completions']), 7)
        self.assertEqual(data['weekly_completions'][-1], {'date': self.today.isoformat(), 'count': 1})


# ===========================================================================
# ATTACHMENT TESTS
# ===========================================================================

class AttachmentTest(TaskAPITestCase):

    def upload(self, task, content=b"hello", name="notes.txt"):
        return self.client.post(
            task_url(task, 'attachments/'),
            {'file': SimpleUploadedFile(name, content, content_type='text/plain')},
            format='multipart',
        )

    def test_upload_list_and_delete(self):
        task = self.make_task("With files")

        uploaded = self.upload(task)
        listed = self.client.get(task_url(task, 'attachments/'))
        deleted = self.client.delete(task_url(task, f"attachments/{uploaded.data['uid']}/"))

        self.assertEqual(uploaded.status_code, status.HTTP_201_CREATED)
        self.assertEqual(uploaded.data['original_filename'], 'notes.txt')
        self.assertEqual(uploaded.data['file_size'], 5)
        self.assertEqual(len(listed.data['attachments']), 1)
        self.assertEqual(deleted.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(TaskAttachment.objects.exists())

    @override_settings(TASKDESK_MAX_ATTACHMENT_SIZE=4)
    def test_oversized_upload_is_rejected(self):
        task = self.make_task("With files")
        response = self.upload(task)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(TASKDESK_MAX_ATTACHMENTS_PER_TASK=1)
    def test_attachment_count_limit(self):
        task = self.make_task("With files")
        self.upload(task)
        response = self.upload(task, name="second.txt")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_read_only_user_cannot_upload(self):
        task = self.make_task("Shared", user=self.other)
        Permission.objects.create(
            user=self.owner,
            resource_type=ResourceType.TASK,
            resource_uid=task.uid,
            access_level=AccessLevel.READ_ONLY,
            propagation=Propagation.DIRECT,
        )

        response = self.upload(task)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


# ===========================================================================
# TAG TESTS
# ===========================================================================

class TagAPITest(TaskAPITestCase):

    def test_create_list_and_delete(self):
        created = self.client.post(TAGS_URL, {'name': 'work'}, format='json')
        duplicate = self.client.post(TAGS_URL, {'name': 'work'}, format='json')
        Tag.objects.create(user=self.other, name='private')
        listed = self.client.get(TAGS_URL)
        deleted = self.client.delete(f"{TAGS_URL}{created.data['uid']}/")

        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual(duplicate.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual([tag['name'] for tag in listed.data], ['work'])
        self.assertEqual(deleted.status_code, status.HTTP_204_NO_CONTENT)
