from django.urls import path
from .views import tag_destroy_view, tag_list_create_view

urlpatterns = [
    path('', tag_list_create_view, name='tag-list-create'),
    path('<str:uid>/', tag_destroy_view, name='tag-detail'),
]
