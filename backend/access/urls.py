from django.urls import path
from .views import share_list_create_view

urlpatterns = [
    # GET (list direct shares) and POST (grant / revoke)
    path('', share_list_create_view, name='share-list-create'),
]
