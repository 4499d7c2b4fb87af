from django.urls import path

from .views import project_detail_view, project_list_create_view, project_pin_view

urlpatterns = [
    path('', project_list_create_view, name='project-list'),
    path('<str:uid>/', project_detail_view, name='project-detail'),
    path('<str:uid>/pin/', project_pin_view, name='project-pin'),
]
