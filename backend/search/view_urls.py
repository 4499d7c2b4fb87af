from django.urls import path
from .views import (
    pinned_saved_view_list_view,
    saved_view_detail_view,
    saved_view_list_create_view,
    saved_view_pin_view,
)

urlpatterns = [
    path('', saved_view_list_create_view, name='saved-view-list-create'),
    # Declared before the uid route
    path('pinned/', pinned_saved_view_list_view, name='saved-view-pinned'),
    path('<str:uid>/', saved_view_detail_view, name='saved-view-detail'),
    path('<str:uid>/pin/', saved_view_pin_view, name='saved-view-pin'),
]
