from django.urls import path
from .views import (
    attachment_destroy_view,
    attachment_download_view,
    attachment_list_create_view,
    next_iterations_view,
    subtask_list_view,
    task_assign_view,
    task_detail_view,
    task_list_create_view,
    task_metrics_view,
    task_subscribe_view,
    task_unassign_view,
    task_unsubscribe_view,
)

urlpatterns = [
    # GET (filtered list) and POST (create)
    path('', task_list_create_view, name='task-list-create'),

    # Dashboard counters; declared before the uid routes
    path('metrics/', task_metrics_view, name='task-metrics'),

    # GET, PUT, PATCH, DELETE (detail and manipulation)
    path('<str:uid>/', task_detail_view, name='task-detail'),
    path('<str:uid>/subtasks/', subtask_list_view, name='task-subtasks'),
    path('<str:uid>/assign/', task_assign_view, name='task-assign'),
    path('<str:uid>/unassign/', task_unassign_view, name='task-unassign'),
    path('<str:uid>/subscribe/', task_subscribe_view, name='task-subscribe'),
    path('<str:uid>/unsubscribe/', task_unsubscribe_view, name='task-unsubscribe'),
    path('<str:uid>/next-iterations/', next_iterations_view, name='task-next-iterations'),

    path('<str:uid>/attachments/', attachment_list_create_view, name='task-attachments'),
    path(
        '<str:uid>/attachments/<str:attachment_uid>/',
        attachment_destroy_view,
        name='task-attachment-detail'
    ),
    path(
        '<str:uid>/attachments/<str:attachment_uid>/download/',
        attachment_download_view,
        name='task-attachment-download'
    ),
]
