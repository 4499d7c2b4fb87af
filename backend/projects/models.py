from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from api.utils import generate_uid


class Workspace(models.Model):
    """
    Top-level grouping of projects, shared by everybody who has a project in it.
    """
    uid = models.CharField(max_length=32, unique=True, default=generate_uid, editable=False, verbose_name=_("uid"))
    name = models.CharField(max_length=255, verbose_name=_("name"))
    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='created_workspaces',
        verbose_name=_("creator")
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Workspace")
        verbose_name_plural = _("Workspaces")
        ordering = ['name']

    def __str__(self):
        return self.name


class Project(models.Model):
    class State(models.TextChoices):
        IDEA = 'idea', _('Idea')
        PLANNED = 'planned', _('Planned')
        IN_PROGRESS = 'in_progress', _('In progress')
        BLOCKED = 'blocked', _('Blocked')
        COMPLETED = 'completed', _('Completed')

    ACTIVE_STATES = (State.PLANNED, State.IN_PROGRESS, State.BLOCKED)

    class Priority(models.IntegerChoices):
        LOW = 0, _('Low')
        MEDIUM = 1, _('Medium')
        HIGH = 2, _('High')

    uid = models.CharField(max_length=32, unique=True, default=generate_uid, editable=False, verbose_name=_("uid"))
    name = models.CharField(max_length=255, verbose_name=_("name"))
    description = models.TextField(blank=True, verbose_name=_("description"))

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='projects',
        verbose_name=_("owner")
    )
    area = models.ForeignKey(
        'areas.Area',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='projects',
        verbose_name=_("department")
    )
    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='projects',
        verbose_name=_("workspace")
    )

    state = models.CharField(max_length=20, choices=State.choices, default=State.IDEA, verbose_name=_("state"))
    priority = models.PositiveSmallIntegerField(choices=Priority.choices, null=True, blank=True, verbose_name=_("priority"))
    due_date = models.DateField(null=True, blank=True, verbose_name=_("due date"))
    image_url = models.CharField(max_length=500, blank=True, verbose_name=_("image url"))
    tags = models.ManyToManyField('tasks.Tag', blank=True, related_name='projects', verbose_name=_("tags"))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Project")
        verbose_name_plural = _("Projects")
        ordering = ['name']

    def __str__(self):
        return self.name


class ProjectPin(models.Model):
    """Per-user sidebar pin of a project."""
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='pins', verbose_name=_("project"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='project_pins',
        verbose_name=_("user")
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Project pin")
        verbose_name_plural = _("Project pins")
        constraints = [
            models.UniqueConstraint(fields=['project', 'user'], name='unique_project_pin'),
        ]
