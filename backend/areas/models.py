from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from api.utils import generate_uid


class Area(models.Model):
    """
    A department. Groups users (members and admins) and the projects
    they work on.
    """
    uid = models.CharField(max_length=32, unique=True, default=generate_uid, editable=False, verbose_name=_("uid"))
    name = models.CharField(max_length=255, verbose_name=_("name"))
    description = models.TextField(blank=True, verbose_name=_("description"))

    # Owner. Always has admin access to the department.
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='owned_areas',
        verbose_name=_("owner")
    )

    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='AreasMember',
        related_name='member_areas',
        verbose_name=_("members")
    )

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Department")
        verbose_name_plural = _("Departments")
        ordering = ['name']

    def __str__(self):
        return self.name


class AreasMember(models.Model):
    class Role(models.TextChoices):
        MEMBER = 'member', _('Member')
        ADMIN = 'admin', _('Admin')

    area = models.ForeignKey(Area, on_delete=models.CASCADE, related_name='memberships', verbose_name=_("department"))

    # A user belongs to at most one department.
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='area_memberships',
        verbose_name=_("user")
    )
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.MEMBER, verbose_name=_("role"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Department member")
        verbose_name_plural = _("Department members")
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['user'], name='unique_department_per_user'),
        ]

    def __str__(self):
        return f"{self.user} in {self.area} ({self.role})"


class AreasSubscriber(models.Model):
    """
    Users subscribed to every new task created by members of a department.
    """
    class Source(models.TextChoices):
        MANUAL = 'manual', _('Added manually')
        ADMIN_ROLE = 'admin_role', _('Department admin role')

    area = models.ForeignKey(Area, on_delete=models.CASCADE, related_name='subscriptions', verbose_name=_("department"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='area_subscriptions',
        verbose_name=_("user")
    )
    added_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
        verbose_name=_("added by")
    )
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.MANUAL, verbose_name=_("source"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Department subscriber")
        verbose_name_plural = _("Department subscribers")
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['area', 'user', 'source'], name='unique_area_subscriber_source'),
        ]

    def __str__(self):
        return f"{self.user} subscribed to {self.area} ({self.source})"
