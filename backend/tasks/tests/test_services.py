# tasks/tests/test_services.py
"""
Task Service Tests
==================

Domain operations exercised without the HTTP layer.

Test Categories:
----------------
1. Creation Tests - Default assignee, critical validation, department admins
2. Assignment Tests - Permission rows, notifications, authorization
3. Subscription Tests - ro grants, duplicates, existing grants
4. Update Tests - Completion timestamps and subscriber notifications
5. Deletion Tests - Owner-only, permission cleanup
6. Recurring Tests - Instance generation, completions, template edits
"""

import datetime
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from access.models import AccessLevel, Permission, Propagation, ResourceType
from api.exceptions import Conflict
from areas.services import add_area_member, create_area
from notifications import services as notifications
from notifications.models import Notification
from tasks import services
from tasks.celery_tasks import generate_all_recurring_instances
from tasks.models import RecurringCompletion, Task, TaskSubscriber
from users.models import Role

User = get_user_model()


# ===========================================================================
# HELPER FIXTURES
# ===========================================================================

def create_test_user(name: str = "owner", superadmin: bool = False) -> User:
    user = User.objects.create_user(
        email=f"{name}@example.com",
        password="testpass123",
        first_name=name.capitalize(),
    )
    if superadmin:
        Role.objects.create(user=user, is_admin=True)
    return user


def create_test_task(user: User, name: str = "Test Task", **fields) -> Task:
    return Task.objects.create(user=user, name=name, **fields)


# ===========================================================================
# CREATION TESTS
# ===========================================================================

class CreateTaskTest(TestCase):

    def setUp(self):
        self.owner = create_test_user("owner")
        self.other = create_test_user("other")

    def test_assignee_defaults_to_owner_when_omitted(self):
        task = services.create_task(self.owner, {'name': 'Write report'})
        self.assertEqual(task.assigned_to, self.owner)

    def test_explicit_null_assignee_is_kept(self):
        task = services.create_task(self.owner, {'name': 'Write report', 'assigned_to': None})
        self.assertIsNone(task.assigned_to)

    def test_assigning_someone_else_grants_rw_and_notifies(self):
        task = services.create_task(self.owner, {'name': 'Review', 'assigned_to': self.other})

        permission = Permission.objects.get(user=self.other, resource_type=ResourceType.TASK, resource_uid=task.uid)
        self.assertEqual(permission.access_level, AccessLevel.READ_WRITE)
        self.assertEqual(permission.propagation, Propagation.ASSIGNMENT)

        notification = Notification.objects.get(user=self.other)
        self.assertEqual(notification.type, notifications.TASK_ASSIGNED)
        self.assertEqual(notification.data['taskUid'], task.uid)
        self.assertEqual(notification.data['assignedById'], self.owner.id)

    def test_critical_task_requires_due_date(self):
        with self.assertRaises(ValidationError) as ctx:
            services.create_task(self.owner, {'name': 'Outage', 'priority': Task.Priority.CRITICAL})
        self.assertEqual(ctx.exception.detail['detail'], services.CRITICAL_TASK_MESSAGE)

    def test_critical_task_with_due_date_and_assignee(self):
        task = services.create_task(self.owner, {
            'name': 'Outage',
            'priority': Task.Priority.CRITICAL,
            'due_date': datetime.date(2030, 1, 1),
        })
        self.assertEqual(task.priority, Task.Priority.CRITICAL)

    def test_done_on_creation_sets_completed_at(self):
        task = services.create_task(self.owner, {'name': 'Already done', 'status': Task.Status.DONE})
        self.assertIsNotNone(task.completed_at)

    def test_department_admins_are_subscribed_to_member_tasks(self):
        admin = create_test_user("admin")
        area = create_area(admin, "Engineering")
        add_area_member(area, self.owner.id, 'member', admin)

        task = services.create_task(self.owner, {'name': 'Member task'})

        self.assertTrue(TaskSubscriber.objects.filter(task=task, user=admin).exists())
        permission = Permission.objects.get(user=admin, resource_type=ResourceType.TASK, resource_uid=task.uid)
        self.assertEqual(permission.access_level, AccessLevel.READ_ONLY)
        self.assertEqual(permission.propagation, Propagation.SUBSCRIPTION)

    def test_admin_is_not_subscribed_to_own_tasks(self):
        admin = create_test_user("admin")
        create_area(admin, "Engineering")

        task = services.create_task(admin, {'name': 'Admin task'})

        self.assertFalse(TaskSubscriber.objects.filter(task=task).exists())


# ===========================================================================
# ASSIGNMENT TESTS
# ===========================================================================

class AssignmentTest(TestCase):

    def setUp(self):
        self.owner = create_test_user("owner")
        self.assignee = create_test_user("assignee")
        self.stranger = create_test_user("stranger")
        self.task = create_test_task(self.owner, assigned_to=self.owner)

    def test_owner_can_assign(self):
        services.assign_task(self.task, self.assignee, self.owner)

        self.task.refresh_from_db()
        self.assertEqual(self.task.assigned_to, self.assignee)
        self.assertTrue(Permission.objects.filter(
            user=self.assignee, resource_uid=self.task.uid, propagation=Propagation.ASSIGNMENT
        ).exists())

    def test_non_owner_cannot_assign(self):
        with self.assertRaises(PermissionDenied):
            services.assign_task(self.task, self.assignee, self.stranger)

    def test_superadmin_can_assign(self):
        superadmin = create_test_user("root", superadmin=True)
        services.assign_task(self.task, self.assignee, superadmin)
        self.assertEqual(self.task.assigned_to, self.assignee)

    def test_inactive_user_cannot_be_assigned(self):
        self.assignee.is_active = False
        self.assignee.save()
        with self.assertRaises(ValidationError):
            services.assign_task(self.task, self.assignee, self.owner)

    def test_reassignment_moves_permission_and_notifies_previous(self):
        services.assign_task(self.task, self.assignee, self.owner)
        services.assign_task(self.task, self.stranger, self.owner)

        self.assertFalse(Permission.objects.filter(user=self.assignee, resource_uid=self.task.uid).exists())
        self.assertTrue(Permission.objects.filter(user=self.stranger, resource_uid=self.task.uid).exists())
        self.assertTrue(Notification.objects.filter(
            user=self.assignee, type=notifications.TASK_UNASSIGNED
        ).exists())

    def test_assignee_can_unassign(self):
        services.assign_task(self.task, self.assignee, self.owner)
        services.unassign_task(self.task, self.assignee)

        self.task.refresh_from_db()
        self.assertIsNone(self.task.assigned_to)
        self.assertFalse(Permission.objects.filter(user=self.assignee, resource_uid=self.task.uid).exists())

    def test_stranger_cannot_unassign(self):
        with self.assertRaises(PermissionDenied):
            services.unassign_task(self.task, self.stranger)

    def test_unassign_without_assignee_is_rejected(self):
        self.task.assigned_to = None
        self.task.save()
        with self.assertRaises(ValidationError):
            services.unassign_task(self.task, self.owner)

    def test_critical_task_cannot_be_unassigned(self):
        self.task.priority = Task.Priority.CRITICAL
        self.task.due_date = datetime.date(2030, 1, 1)
        self.task.save()
        with self.assertRaises(ValidationError) as ctx:
            services.unassign_task(self.task, self.owner)
        self.assertEqual(ctx.exception.detail['detail'], services.CRITICAL_TASK_MESSAGE)


# ===========================================================================
# SUBSCRIPTION TESTS
# ===========================================================================

class SubscriptionTest(TestCase):

    def setUp(self):
        self.owner = create_test_user("owner")
        self.watcher = create_test_user("watcher")
        self.task = create_test_task(self.owner)

    def test_subscribe_grants_read_only(self):
        services.subscribe_user(self.task, self.watcher, self.owner)

        self.assertTrue(services.is_user_subscribed(self.task, self.watcher))
        permission = Permission.objects.get(user=self.watcher, resource_uid=self.task.uid)
        self.assertEqual(permission.access_level, AccessLevel.READ_ONLY)

    def test_duplicate_subscription_conflicts(self):
        services.subscribe_user(self.task, self.watcher, self.owner)
        with self.assertRaises(Conflict):
            services.subscribe_user(self.task, self.watcher, self.owner)

    def test_existing_grant_is_not_downgraded(self):
        Permission.objects.create(
            user=self.watcher,
            resource_type=ResourceType.TASK,
            resource_uid=self.task.uid,
            access_level=AccessLevel.READ_WRITE,
            propagation=Propagation.DIRECT,
        )
        services.subscribe_user(self.task, self.watcher, self.owner)

        permission = Permission.objects.get(user=self.watcher, resource_uid=self.task.uid)
        self.assertEqual(permission.access_level, AccessLevel.READ_WRITE)

    def test_unsubscribe_removes_subscription_grant(self):
        services.subscribe_user(self.task, self.watcher, self.owner)
        services.unsubscribe_user(self.task, self.watcher, self.watcher)

        self.assertFalse(services.is_user_subscribed(self.task, self.watcher))
        self.assertFalse(Permission.objects.filter(user=self.watcher, resource_uid=self.task.uid).exists())

    def test_unsubscribe_when_not_subscribed(self):
        with self.assertRaises(NotFound):
            services.unsubscribe_user(self.task, self.watcher, self.watcher)

    def test_retroactive_department_subscription(self):
        admin = create_test_user("admin")
        area = create_area(admin, "Support")
        add_area_member(area, self.owner.id, 'member', admin)

        count = services.subscribe_user_to_department_tasks(area, self.watcher)

        self.assertEqual(count, 1)
        self.assertTrue(services.is_user_subscribed(self.task, self.watcher))


# ===========================================================================
# UPDATE TESTS
# ===========================================================================

class UpdateTaskTest(TestCase):

    def setUp(self):
        self.owner = create_test_user("owner")
        self.assignee = create_test_user("assignee")
        self.watcher = create_test_user("watcher")
        self.task = create_test_task(self.owner, assigned_to=self.assignee)
        TaskSubscriber.objects.create(task=self.task, user=self.watcher)

    def test_completion_sets_and_reopening_clears_completed_at(self):
        services.update_task(self.task, {'status': Task.Status.DONE}, self.owner)
        self.assertIsNotNone(self.task.completed_at)

        services.update_task(self.task, {'status': Task.Status.IN_PROGRESS}, self.owner)
        self.assertIsNone(self.task.completed_at)

    def test_assignee_completion_notifies_owner(self):
        services.update_task(self.task, {'status': Task.Status.DONE}, self.assignee)

        notification = Notification.objects.get(user=self.owner, type=notifications.ASSIGNED_TASK_COMPLETED)
        self.assertEqual(notification.level, Notification.Level.SUCCESS)
        self.assertEqual(notification.data['completedById'], self.assignee.id)

    def test_status_change_notifies_subscribers(self):
        services.update_task(self.task, {'status': Task.Status.DONE}, self.owner)

        notification = Notification.objects.get(user=self.watcher)
        self.assertEqual(notification.type, notifications.TASK_STATUS_CHANGED_FOR_SUBSCRIBER)
        self.assertIn('as completed', notification.message)
        self.assertEqual(notification.data['new_status'], Task.Status.DONE)

    def test_field_update_names_the_field(self):
        services.update_task(self.task, {'note': 'More detail'}, self.owner)

        notification = Notification.objects.get(user=self.watcher)
        self.assertEqual(notification.type, notifications.TASK_UPDATED_FOR_SUBSCRIBER)
        self.assertIn('updated note', notification.message)

    def test_clearing_due_date_of_critical_task_is_rejected(self):
        self.task.priority = Task.Priority.CRITICAL
        self.task.due_date = datetime.date(2030, 1, 1)
        self.task.save()
        with self.assertRaises(ValidationError):
            services.update_task(self.task, {'due_date': None}, self.owner)

    def test_reassignment_by_non_owner_is_rejected_before_saving(self):
        with self.assertRaises(PermissionDenied):
            services.update_task(self.task, {'name': 'Renamed', 'assigned_to': self.watcher}, self.assignee)
        self.task.refresh_from_db()
        self.assertEqual(self.task.name, 'Test Task')


# ===========================================================================
# DELETION TESTS
# ===========================================================================

class DeleteTaskTest(TestCase):

    def setUp(self):
        self.owner = create_test_user("owner")
        self.assignee = create_test_user("assignee")
        self.task = create_test_task(self.owner)
        self.subtask = create_test_task(self.owner, name="Child", parent_task=self.task)

    def test_assignee_cannot_delete(self):
        with self.assertRaises(PermissionDenied) as ctx:
            services.delete_task(self.task, self.assignee)
        self.assertEqual(str(ctx.exception.detail), services.DELETE_FORBIDDEN_MESSAGE)

    def test_owner_deletes_subtree_and_permissions(self):
        for task in (self.task, self.subtask):
            Permission.objects.create(
                user=self.assignee,
                resource_type=ResourceType.TASK,
                resource_uid=task.uid,
                access_level=AccessLevel.READ_ONLY,
                propagation=Propagation.DIRECT,
            )

        services.delete_task(self.task, self.owner)

        self.assertFalse(Task.objects.filter(id__in=[self.task.id, self.subtask.id]).exists())
        self.assertFalse(Permission.objects.filter(user=self.assignee).exists())


# ===========================================================================
# RECURRING TESTS
# ===========================================================================

@override_settings(TASKDESK_RECURRENCE_LOOKAHEAD_DAYS=7)
class RecurringInstanceTest(TestCase):

    def setUp(self):
        cache.clear()
        self.owner = create_test_user("owner")
        self.today = datetime.date(2025, 3, 10)

    def _template(self, **fields):
        values = {'due_date': self.today, 'recurrence_type': Task.RecurrenceType.DAILY, 'assigned_to': self.owner}
        values.update(fields)
        return create_test_task(self.owner, name="Standup", **values)

    def test_generates_window_after_template(self):
        template = self._template()

        created = services.generate_recurring_instances(template, today=self.today)

        self.assertEqual(len(created), 7)
        due_dates = sorted(instance.due_date for instance in created)
        self.assertEqual(due_dates[0], self.today + datetime.timedelta(days=1))
        self.assertEqual(due_dates[-1], self.today + datetime.timedelta(days=7))
        self.assertTrue(all(instance.recurrence_type == Task.RecurrenceType.NONE for instance in created))

    def test_generation_is_idempotent(self):
        template = self._template()
        services.generate_recurring_instances(template, today=self.today)
        again = services.generate_recurring_instances(template, today=self.today)

        self.assertEqual(again, [])
        self.assertEqual(template.recurring_instances.count(), 7)

    def test_past_occurrences_are_not_backfilled(self):
        template = self._template(due_date=self.today - datetime.timedelta(days=10))

        services.generate_recurring_instances(template, today=self.today)

        earliest = template.recurring_instances.order_by('due_date').first()
        self.assertEqual(earliest.due_date, self.today)

    def test_template_anchored_years_ago_fills_the_window(self):
        template = self._template(due_date=self.today - datetime.timedelta(days=1500))

        created = services.generate_recurring_instances(template, today=self.today)

        self.assertEqual(
            sorted(instance.due_date for instance in created),
            [self.today + datetime.timedelta(days=n) for n in range(8)],
        )

    def test_recurrence_fields_sent_to_an_instance_are_dropped(self):
        template = self._template()
        instance = services.generate_recurring_instances(template, today=self.today)[0]

        services.update_task(instance, {'recurrence_type': Task.RecurrenceType.WEEKLY, 'name': 'Renamed'}, self.owner)

        instance.refresh_from_db()
        template.refresh_from_db()
        self.assertEqual(instance.recurrence_type, Task.RecurrenceType.NONE)
        self.assertEqual(instance.name, 'Renamed')
        self.assertEqual(template.recurrence_type, Task.RecurrenceType.DAILY)

    def test_deletion_log_counts_subtasks_and_instances_separately(self):
        template = self._template()
        services.generate_recurring_instances(template, today=self.today)
        create_test_task(self.owner, name="Prepare agenda", parent_task=template)

        with self.assertLogs('tasks.services', level='INFO') as logs:
            services.delete_task(template, self.owner)

        self.assertIn("(1 subtasks, 7 recurring instances)", logs.output[-1])

    def test_instances_copy_tags_and_subscribers(self):
        watcher = create_test_user("watcher")
        template = self._template()
        template.tags.set(services.resolve_tags(self.owner, ['ops']))
        TaskSubscriber.objects.create(task=template, user=watcher)

        created = services.generate_recurring_instances(template, today=self.today)

        self.assertEqual([tag.name for tag in created[0].tags.all()], ['ops'])
        self.assertTrue(TaskSubscriber.objects.filter(task=created[0], user=watcher).exists())

    def test_completion_based_template_creates_next_on_completion(self):
        template = self._template(completion_based=True)
        self.assertEqual(services.generate_recurring_instances(template, today=self.today), [])

        services.update_task(template, {'status': Task.Status.DONE}, self.owner)

        completion = RecurringCompletion.objects.get(task=template)
        self.assertIsNone(completion.instance)
        instance = template.recurring_instances.get()
        self.assertEqual(instance.due_date, timezone.localdate() + datetime.timedelta(days=1))

    def test_instance_completion_is_recorded_against_template(self):
        template = self._template()
        instance = services.generate_recurring_instances(template, today=self.today)[0]

        services.update_task(instance, {'status': Task.Status.DONE}, self.owner)

        completion = RecurringCompletion.objects.get(task=template)
        self.assertEqual(completion.instance, instance)
        self.assertEqual(completion.original_due_date, instance.due_date)

    def test_update_parent_recurrence_from_instance(self):
        template = self._template()
        instance = services.generate_recurring_instances(template, today=self.today)[0]

        services.update_task(instance, {
            'recurrence_type': Task.RecurrenceType.WEEKLY,
            'update_parent_recurrence': True,
        }, self.owner)

        template.refresh_from_db()
        instance.refresh_from_db()
        self.assertEqual(template.recurrence_type, Task.RecurrenceType.WEEKLY)
        self.assertEqual(instance.recurrence_type, Task.RecurrenceType.NONE)

    def test_deleting_template_deletes_instances(self):
        template = self._template()
        services.generate_recurring_instances(template, today=self.today)

        services.delete_task(template, self.owner)

        self.assertFalse(Task.objects.filter(user=self.owner).exists())

    def test_next_iterations(self):
        template = self._template(recurrence_type=Task.RecurrenceType.WEEKLY)

        dates = services.next_iterations(template, count=3)

        self.assertEqual(dates, [self.today + datetime.timedelta(days=7 * n) for n in (1, 2, 3)])

    def test_next_iterations_of_plain_task(self):
        task = create_test_task(self.owner, due_date=self.today)
        self.assertEqual(services.next_iterations(task), [])

    @patch('tasks.celery_tasks.generate_recurring_instances.delay')
    def test_periodic_sweep_queues_due_based_templates(self, mock_delay):
        template = self._template()
        self._template(completion_based=True)

        queued = generate_all_recurring_instances()

        self.assertEqual(queued, 1)
        mock_delay.assert_called_once_with(template.id)
