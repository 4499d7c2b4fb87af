from django.urls import path

from .views import workspace_detail_view, workspace_list_create_view

urlpatterns = [
    path('', workspace_list_create_view, name='workspace-list'),
    path('<str:uid>/', workspace_detail_view, name='workspace-detail'),
]
