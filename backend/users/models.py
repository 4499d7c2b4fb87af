from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.utils.translation import gettext_lazy as _
from .managers import CustomUserManager


class CustomUser(AbstractBaseUser, PermissionsMixin):
    """
    Application user. Uses email as the unique auth field.
    """
    email = models.EmailField(_('email address'), unique=True)

    username = models.CharField(
        _('username'),
        max_length=150,
        blank=True,
        unique=True,
        null=True
    )

    first_name = models.CharField(_('first name'), max_length=150, blank=True)
    last_name = models.CharField(_('last name'), max_length=150, blank=True)

    is_staff = models.BooleanField(
        _('staff status'),
        default=False,
        help_text=_('Designates whether the user can log into this admin site.'),
    )
    is_active = models.BooleanField(
        _('active'),
        default=True,
        help_text=_(
            'Designates whether this user should be treated as active. '
            'Unselect this instead of deleting accounts.'
        ),
    )
    date_joined = models.DateTimeField(_('date joined'), auto_now_add=True)

    timezone = models.CharField(
        _('Timezone'),
        max_length=60,
        default='UTC',
        help_text=_('User timezone, used for "today" based task views.'),
    )

    # {"task_assigned": {"inApp": true, "telegram": false}, ...}
    notification_preferences = models.JSONField(
        _('notification preferences'),
        default=dict,
        blank=True,
    )

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')

    def get_full_name(self):
        """Returns the first_name plus the last_name, with a space in between."""
        return f'{self.first_name} {self.last_name}'.strip()

    def get_short_name(self):
        return self.first_name

    @property
    def display_name(self):
        return self.get_full_name() or self.email

    @property
    def is_superadmin(self):
        try:
            return self.role.is_admin
        except Role.DoesNotExist:
            return False

    def __str__(self):
        return self.email


class Role(models.Model):
    """
    Application-level role. A user whose role has is_admin=True is a
    superadmin: full visibility across departments.
    """
    user = models.OneToOneField(
        CustomUser,
        on_delete=models.CASCADE,
        related_name='role',
        verbose_name=_('user')
    )
    is_admin = models.BooleanField(default=False, verbose_name=_('is admin'))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_('created at'))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_('updated at'))

    class Meta:
        verbose_name = _('Role')
        verbose_name_plural = _('Roles')

    def __str__(self):
        return f"Role for {self.user.email}: {'admin' if self.is_admin else 'user'}"
