from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from api.utils import generate_uid


class Tag(models.Model):
    uid = models.CharField(max_length=32, unique=True, default=generate_uid, editable=False, verbose_name=_("uid"))
    name = models.CharField(max_length=100, verbose_name=_("name"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tags',
        verbose_name=_("user")
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Tag")
        verbose_name_plural = _("Tags")
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['user', 'name'], name='unique_tag_name_per_user'),
        ]

    def __str__(self):
        return self.name


class Task(models.Model):
    """
    A unit of work owned by one user, optionally assigned to another.

    A task whose recurrence_type is not 'none' is a recurring template;
    the concrete occurrences are separate tasks pointing back to it through
    recurring_parent.
    """
    class Status(models.IntegerChoices):
        NOT_STARTED = 0, _('Not started')
        IN_PROGRESS = 1, _('In progress')
        DONE = 2, _('Done')
        ARCHIVED = 3, _('Archived')
        WAITING = 4, _('Waiting')

    class Priority(models.IntegerChoices):
        LOW = 0, _('Low')
        MEDIUM = 1, _('Medium')
        HIGH = 2, _('High')
        CRITICAL = 3, _('Critical')

    class RecurrenceType(models.TextChoices):
        NONE = 'none', _('Does not repeat')
        DAILY = 'daily', _('Daily')
        WEEKLY = 'weekly', _('Weekly')
        MONTHLY = 'monthly', _('Monthly')
        MONTHLY_WEEKDAY = 'monthly_weekday', _('Monthly on a weekday')
        MONTHLY_LAST_DAY = 'monthly_last_day', _('Monthly on the last day')
        YEARLY = 'yearly', _('Yearly')

    OPEN_STATUSES = (Status.NOT_STARTED, Status.IN_PROGRESS, Status.WAITING)

    uid = models.CharField(max_length=32, unique=True, default=generate_uid, editable=False, verbose_name=_("uid"))
    name = models.CharField(max_length=255, verbose_name=_("name"))
    note = models.TextField(blank=True, verbose_name=_("note"))

    # Owner (creator) of the task
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tasks',
        verbose_name=_("owner")
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='assigned_tasks',
        verbose_name=_("assigned to")
    )
    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='tasks',
        verbose_name=_("project")
    )
    parent_task = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True, blank=True,
        related_name='subtasks',
        verbose_name=_("parent task")
    )

    status = models.PositiveSmallIntegerField(choices=Status.choices, default=Status.NOT_STARTED, verbose_name=_("status"))
    priority = models.PositiveSmallIntegerField(choices=Priority.choices, default=Priority.LOW, verbose_name=_("priority"))

    due_date = models.DateField(null=True, blank=True, verbose_name=_("due date"))
    defer_until = models.DateTimeField(
        null=True, blank=True,
        verbose_name=_("defer until"),
        help_text=_("The task is hidden from suggestions until this moment.")
    )
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("completed at"))
    today = models.BooleanField(
        default=False,
        verbose_name=_("in today's plan"),
    )

    # Recurrence rule (only meaningful on templates)
    recurrence_type = models.CharField(
        max_length=20,
        choices=RecurrenceType.choices,
        default=RecurrenceType.NONE,
        verbose_name=_("recurrence type")
    )
    recurrence_interval = models.PositiveSmallIntegerField(default=1, verbose_name=_("recurrence interval"))
    recurrence_end_date = models.DateField(null=True, blank=True, verbose_name=_("recurrence end date"))
    # 0=Sunday .. 6=Saturday
    recurrence_weekday = models.PositiveSmallIntegerField(null=True, blank=True, verbose_name=_("recurrence weekday"))
    recurrence_weekdays = models.JSONField(default=list, blank=True, verbose_name=_("recurrence weekdays"))
    recurrence_month_day = models.PositiveSmallIntegerField(null=True, blank=True, verbose_name=_("recurrence day of month"))
    # 1..4, 5 means "last"
    recurrence_week_of_month = models.PositiveSmallIntegerField(null=True, blank=True, verbose_name=_("recurrence week of month"))
    completion_based = models.BooleanField(
        default=False,
        verbose_name=_("completion based"),
        help_text=_("Next occurrence is computed from the completion date instead of the due date.")
    )
    recurring_parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True, blank=True,
        related_name='recurring_instances',
        verbose_name=_("recurring template")
    )

    tags = models.ManyToManyField(Tag, blank=True, related_name='tasks', verbose_name=_("tags"))
    subscribers = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='TaskSubscriber',
        blank=True,
        related_name='subscribed_tasks',
        verbose_name=_("subscribers")
    )

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Task")
        verbose_name_plural = _("Tasks")
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['recurring_parent', 'due_date'],
                condition=Q(recurring_parent__isnull=False),
                name='unique_recurring_instance_per_date',
            ),
        ]

    def __str__(self):
        return f"Task for {self.user.email}: {self.name}"

    @property
    def is_recurring_template(self):
        return self.recurrence_type != self.RecurrenceType.NONE

    @property
    def is_done(self):
        return self.status == self.Status.DONE


class TaskSubscriber(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='subscriptions', verbose_name=_("task"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_subscriptions',
        verbose_name=_("user")
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Task subscriber")
        verbose_name_plural = _("Task subscribers")
        constraints = [
            models.UniqueConstraint(fields=['task', 'user'], name='unique_task_subscriber'),
        ]


class RecurringCompletion(models.Model):
    """
    History of completed occurrences of a recurring template.
    """
    task = models.ForeignKey(
        Task,
        on_delete=models.CASCADE,
        related_name='recurring_completions',
        verbose_name=_("recurring template")
    )
    instance = models.ForeignKey(
        Task,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
        verbose_name=_("completed instance")
    )
    original_due_date = models.DateField(null=True, blank=True, verbose_name=_("original due date"))
    completed_at = models.DateTimeField(verbose_name=_("completed at"))
    skipped = models.BooleanField(default=False, verbose_name=_("skipped"))

    class Meta:
        verbose_name = _("Recurring completion")
        verbose_name_plural = _("Recurring completions")
        ordering = ['-completed_at']


def attachment_upload_to(instance, filename):
    return f"attachments/{instance.task.uid}/{instance.uid}_{filename}"


class TaskAttachment(models.Model):
    uid = models.CharField(max_length=32, unique=True, default=generate_uid, editable=False, verbose_name=_("uid"))
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='attachments', verbose_name=_("task"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_attachments',
        verbose_name=_("uploaded by")
    )
    file = models.FileField(upload_to=attachment_upload_to, max_length=500, verbose_name=_("file"))
    original_filename = models.CharField(max_length=255, verbose_name=_("original filename"))
    file_size = models.PositiveIntegerField(verbose_name=_("file size"))
    mime_type = models.CharField(max_length=255, blank=True, verbose_name=_("mime type"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Task attachment")
        verbose_name_plural = _("Task attachments")
        ordering = ['created_at']

    def __str__(self):
        return self.original_filename
