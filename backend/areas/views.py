from django.db.models import Prefetch
from rest_framework import generics, permissions, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from access.models import Permission, ResourceType
from access.permissions import ResourceAccessPermission
from access.services import ACCESS_ADMIN, visible_areas_q
from . import services
from .models import Area, AreasMember
from .serializers import (
    AddMemberSerializer,
    AddSubscriberSerializer,
    AreaMemberSerializer,
    AreaSerializer,
    AreaSubscriberSerializer,
    MemberRoleSerializer,
)


def _area_queryset(user):
    return (
        Area.objects.filter(visible_areas_q(user))
        .select_related('user')
        .prefetch_related(Prefetch('memberships', queryset=AreasMember.objects.select_related('user')))
        .distinct()
    )


class DepartmentListCreateView(generics.ListCreateAPIView):
    """
    GET: departments the user owns or belongs to (all for superadmins).
    POST: create a department; the creator becomes its admin.
    """
    serializer_class = AreaSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return _area_queryset(self.request.user)

department_list_create_view = DepartmentListCreateView.as_view()


class DepartmentDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = AreaSerializer
    permission_classes = [permissions.IsAuthenticated, ResourceAccessPermission]
    lookup_field = 'uid'
    write_access_level = ACCESS_ADMIN

    def get_queryset(self):
        return _area_queryset(self.request.user)

    def perform_destroy(self, instance):
        Permission.objects.filter(resource_type=ResourceType.AREA, resource_uid=instance.uid).delete()
        instance.delete()

department_detail_view = DepartmentDetailView.as_view()


class DepartmentMixin:
    """Resolves the department from the `uid` URL kwarg (404 when invisible)."""

    def get_area(self):
        return generics.get_object_or_404(_area_queryset(self.request.user), uid=self.kwargs['uid'])


class DepartmentMembersView(DepartmentMixin, generics.GenericAPIView):
    """
    GET: members of the department.
    POST: add a member ({user_id, role}).
    """
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = AddMemberSerializer

    def _members(self, area):
        return AreaMemberSerializer(services.get_area_members(area), many=True).data

    def get(self, request, *args, **kwargs):
        area = self.get_area()
        return Response({'members': self._members(area)})

    def post(self, request, *args, **kwargs):
        area = self.get_area()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.add_area_member(
            area,
            serializer.validated_data['user_id'],
            serializer.validated_data['role'],
            added_by=request.user,
        )
        return Response({'members': self._members(area)}, status=status.HTTP_201_CREATED)

department_members_view = DepartmentMembersView.as_view()


class DepartmentMemberDetailView(DepartmentMixin, generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, *args, **kwargs):
        area = self.get_area()
        services.remove_area_member(area, self.kwargs['user_id'], removed_by=request.user)
        return Response({'members': AreaMemberSerializer(services.get_area_members(area), many=True).data})

department_member_detail_view = DepartmentMemberDetailView.as_view()


class DepartmentMemberRoleView(DepartmentMixin, generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = MemberRoleSerializer

    def put(self, request, *args, **kwargs):
        area = self.get_area()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.update_member_role(
            area, self.kwargs['user_id'], serializer.validated_data['role'], updated_by=request.user
        )
        return Response({'members': AreaMemberSerializer(services.get_area_members(area), many=True).data})

    patch = put

department_member_role_view = DepartmentMemberRoleView.as_view()


class DepartmentSubscribersView(DepartmentMixin, generics.GenericAPIView):
    """
    GET: subscribers of the department.
    POST: subscribe a user ({user_id, retroactive}).
    """
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = AddSubscriberSerializer

    def _subscribers(self, area):
        return AreaSubscriberSerializer(services.get_area_subscribers(area), many=True).data

    def get(self, request, *args, **kwargs):
        area = self.get_area()
        if not services.can_manage_area_members(area, request.user):
            raise PermissionDenied(services.NOT_AUTHORIZED)
        return Response({'subscribers': self._subscribers(area)})

    def post(self, request, *args, **kwargs):
        area = self.get_area()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.add_area_subscriber(
            area,
            serializer.validated_data['user_id'],
            added_by=request.user,
            retroactive=serializer.validated_data['retroactive'],
        )
        return Response({'subscribers': self._subscribers(area)}, status=status.HTTP_201_CREATED)

department_subscribers_view = DepartmentSubscribersView.as_view()


class DepartmentSubscriberDetailView(DepartmentMixin, generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, *args, **kwargs):
        area = self.get_area()
        services.remove_area_subscriber(
            area,
            self.kwargs['user_id'],
            removed_by=request.user,
            source=request.query_params.get('source'),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

department_subscriber_detail_view = DepartmentSubscriberDetailView.as_view()
