from rest_framework import permissions

from .services import (
    ACCESS_RO,
    ACCESS_RW,
    get_object_access,
    has_access_level,
)


class ResourceAccessPermission(permissions.BasePermission):
    """
    Object-level check against the effective access level of the requester.

    Reads need 'ro'. Writes need the view's `write_access_level`
    (default 'rw'). Views pick the 404-vs-403 behaviour by filtering their
    queryset to visible rows: rows outside it never reach this check.
    """
    message = 'You are not allowed to modify this resource.'

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            required = ACCESS_RO
        else:
            required = getattr(view, 'write_access_level', ACCESS_RW)
        return has_access_level(get_object_access(request.user, obj), required)


class TaskAccessPermission(ResourceAccessPermission):
    message = (
        'You are not allowed to edit this task. '
        'Please contact the creator if you want to make this change.'
    )
