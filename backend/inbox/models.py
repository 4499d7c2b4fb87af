from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from api.utils import generate_uid

TITLE_LENGTH = 255


class InboxItem(models.Model):
    """A quickly captured thought, processed later into a task or project."""

    class Status(models.TextChoices):
        ADDED = 'added', _('Added')
        PROCESSED = 'processed', _('Processed')
        DELETED = 'deleted', _('Deleted')

    uid = models.CharField(max_length=32, unique=True, default=generate_uid, editable=False, verbose_name=_("uid"))
    content = models.TextField(verbose_name=_("content"))
    title = models.CharField(max_length=TITLE_LENGTH, blank=True, verbose_name=_("title"))
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ADDED, verbose_name=_("status"))
    source = models.CharField(max_length=50, default='manual', verbose_name=_("source"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='inbox_items',
        verbose_name=_("user")
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Inbox item")
        verbose_name_plural = _("Inbox items")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status'], name='inbox_user_status_idx'),
        ]

    def __str__(self):
        return self.title or self.content[:50]

    def save(self, *args, **kwargs):
        content = (self.content or '').strip()
        if not self.title and content:
            self.title = content.splitlines()[0][:TITLE_LENGTH]
        super().save(*args, **kwargs)
