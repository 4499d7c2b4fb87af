from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from api.utils import generate_uid


class SavedView(models.Model):
    """A named universal-search query, optionally pinned to the sidebar."""
    uid = models.CharField(max_length=32, unique=True, default=generate_uid, editable=False, verbose_name=_("uid"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='saved_views',
        verbose_name=_("user")
    )
    name = models.CharField(max_length=255, verbose_name=_("name"))
    search_query = models.CharField(max_length=255, blank=True, verbose_name=_("search query"))
    filters = models.JSONField(default=list, blank=True, verbose_name=_("entity filters"))
    priority = models.CharField(max_length=20, blank=True, verbose_name=_("priority"))
    due = models.CharField(max_length=20, blank=True, verbose_name=_("due"))
    defer = models.CharField(max_length=20, blank=True, verbose_name=_("defer"))
    tags = models.JSONField(default=list, blank=True, verbose_name=_("tags"))
    extras = models.JSONField(default=list, blank=True, verbose_name=_("extras"))
    recurring = models.CharField(max_length=20, blank=True, verbose_name=_("recurring"))
    is_pinned = models.BooleanField(default=False, verbose_name=_("pinned"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Saved view")
        verbose_name_plural = _("Saved views")
        ordering = ['-is_pinned', '-created_at']

    def __str__(self):
        return self.name
