from django.urls import path, include

urlpatterns = [
    path('v1/auth/', include('users.urls')),
    path('v1/users/', include('users.list_urls')),
    path('v1/shares/', include('access.urls')),
    path('v1/departments/', include('areas.urls')),
    path('v1/projects/', include('projects.urls')),
    path('v1/workspaces/', include('projects.workspace_urls')),
    path('v1/tasks/', include('tasks.urls')),
    path('v1/tags/', include('tasks.tag_urls')),
    path('v1/notifications/', include('notifications.urls')),
    path('v1/inbox/', include('inbox.urls')),
    path('v1/search/', include('search.urls')),
    path('v1/views/', include('search.view_urls')),
]
