from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class ResourceType(models.TextChoices):
    AREA = 'area', _('Area')
    PROJECT = 'project', _('Project')
    TASK = 'task', _('Task')


class AccessLevel(models.TextChoices):
    READ_ONLY = 'ro', _('Read only')
    READ_WRITE = 'rw', _('Read & write')
    ADMIN = 'admin', _('Admin')


class Propagation(models.TextChoices):
    DIRECT = 'direct', _('Direct share')
    INHERITED = 'inherited', _('Inherited from parent resource')
    AREA_MEMBERSHIP = 'area_membership', _('Area membership')
    ASSIGNMENT = 'assignment', _('Task assignment')
    SUBSCRIPTION = 'subscription', _('Task subscription')


class Action(models.Model):
    """
    Audit row for every sharing or membership change. Permission rows point
    back to the action that produced them.
    """
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='performed_actions',
        verbose_name=_("actor")
    )
    verb = models.CharField(max_length=50, verbose_name=_("verb"))
    resource_type = models.CharField(max_length=20, choices=ResourceType.choices, verbose_name=_("resource type"))
    resource_uid = models.CharField(max_length=32, verbose_name=_("resource uid"))
    target_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='targeted_actions',
        verbose_name=_("target user")
    )
    access_level = models.CharField(
        max_length=10,
        choices=AccessLevel.choices,
        null=True, blank=True,
        verbose_name=_("access level")
    )
    metadata = models.JSONField(null=True, blank=True, verbose_name=_("metadata"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Action")
        verbose_name_plural = _("Actions")
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.verb} {self.resource_type}:{self.resource_uid}"


class Permission(models.Model):
    """
    Materialized access grant of one user on one resource.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='resource_permissions',
        verbose_name=_("user")
    )
    resource_type = models.CharField(max_length=20, choices=ResourceType.choices, verbose_name=_("resource type"))
    resource_uid = models.CharField(max_length=32, verbose_name=_("resource uid"))
    access_level = models.CharField(max_length=10, choices=AccessLevel.choices, verbose_name=_("access level"))
    propagation = models.CharField(
        max_length=20,
        choices=Propagation.choices,
        default=Propagation.DIRECT,
        verbose_name=_("propagation")
    )
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='granted_permissions',
        verbose_name=_("granted by")
    )
    source_action = models.ForeignKey(
        Action,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='permissions',
        verbose_name=_("source action")
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Permission")
        verbose_name_plural = _("Permissions")
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'resource_type', 'resource_uid'],
                name='unique_user_resource_permission',
            ),
        ]
        indexes = [
            models.Index(fields=['resource_type', 'resource_uid'], name='permission_resource_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} {self.access_level} on {self.resource_type}:{self.resource_uid}"
