from django.urls import path
from .views import inbox_item_detail_view, inbox_item_process_view, inbox_list_create_view

urlpatterns = [
    path('', inbox_list_create_view, name='inbox-list-create'),
    path('<str:uid>/', inbox_item_detail_view, name='inbox-item-detail'),
    path('<str:uid>/process/', inbox_item_process_view, name='inbox-item-process'),
]
