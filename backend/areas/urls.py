from django.urls import path

from .views import (
    department_detail_view,
    department_list_create_view,
    department_member_detail_view,
    department_member_role_view,
    department_members_view,
    department_subscriber_detail_view,
    department_subscribers_view,
)

urlpatterns = [
    path('', department_list_create_view, name='department-list'),
    path('<str:uid>/', department_detail_view, name='department-detail'),
    path('<str:uid>/members/', department_members_view, name='department-members'),
    path('<str:uid>/members/<int:user_id>/', department_member_detail_view, name='department-member-detail'),
    path('<str:uid>/members/<int:user_id>/role/', department_member_role_view, name='department-member-role'),
    path('<str:uid>/subscribers/', department_subscribers_view, name='department-subscribers'),
    path('<str:uid>/subscribers/<int:user_id>/', department_subscriber_detail_view, name='department-subscriber-detail'),
]
