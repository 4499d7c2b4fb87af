from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Notification(models.Model):
    class Level(models.TextChoices):
        INFO = 'info', _('Info')
        SUCCESS = 'success', _('Success')
        WARNING = 'warning', _('Warning')
        ERROR = 'error', _('Error')

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
        verbose_name=_("recipient")
    )
    type = models.CharField(max_length=64, verbose_name=_("type"))
    title = models.CharField(max_length=255, verbose_name=_("title"))
    message = models.TextField(verbose_name=_("message"))
    level = models.CharField(max_length=10, choices=Level.choices, default=Level.INFO, verbose_name=_("level"))
    # Delivery channels besides in-app, e.g. ['telegram']
    sources = models.JSONField(default=list, blank=True, verbose_name=_("sources"))
    data = models.JSONField(default=dict, blank=True, verbose_name=_("data"))
    sent_at = models.DateTimeField(default=timezone.now, verbose_name=_("sent at"))
    read_at = models.DateTimeField(null=True, blank=True, verbose_name=_("read at"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Notification")
        verbose_name_plural = _("Notifications")
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'read_at'], name='notification_user_read_idx'),
        ]

    def __str__(self):
        return f"{self.type} for {self.user_id}: {self.title}"

    @property
    def is_read(self):
        return self.read_at is not None
