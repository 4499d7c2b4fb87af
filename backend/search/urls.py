from django.urls import path
from .views import universal_search_view

urlpatterns = [
    path('', universal_search_view, name='universal-search'),
]
