from django.urls import path

from .views import (
    mark_all_read_view,
    notification_destroy_view,
    notification_list_view,
    notification_read_view,
    notification_unread_view,
    unread_count_view,
)

urlpatterns = [
    path('', notification_list_view, name='notification-list'),
    path('unread-count/', unread_count_view, name='notification-unread-count'),
    path('mark-all-read/', mark_all_read_view, name='notification-mark-all-read'),
    path('<int:pk>/', notification_destroy_view, name='notification-detail'),
    path('<int:pk>/read/', notification_read_view, name='notification-read'),
    path('<int:pk>/unread/', notification_unread_view, name='notification-unread'),
]
