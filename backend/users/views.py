from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import generics
from rest_framework.permissions import AllowAny, IsAuthenticated
from .serializers import (
    UserDetailsSerializer,
    UserRegistrationSerializer,
    UserSummarySerializer,
)

User = get_user_model()


class RegisterAPIView(generics.CreateAPIView):
    serializer_class = UserRegistrationSerializer
    permission_classes = [AllowAny]

register_api_view = RegisterAPIView.as_view()


class UserDetailView(generics.RetrieveUpdateAPIView):
    """
    GET: the authenticated user.
    PATCH: update profile fields or notification preferences.
    """
    serializer_class = UserDetailsSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user

user_detail_view = UserDetailView.as_view()


class UserListView(generics.ListAPIView):
    """
    Active users, used to pick assignees, members and share targets.
    Optional ?q= filters by email or name.
    """
    serializer_class = UserSummarySerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = User.objects.filter(is_active=True).order_by('email')
        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(
                Q(email__icontains=q) | Q(first_name__icontains=q) | Q(last_name__icontains=q)
            )
        return queryset

user_list_view = UserListView.as_view()
