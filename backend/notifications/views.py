from rest_framework import generics, permissions
from rest_framework.response import Response

from api.utils import parse_bool, parse_int
from . import services
from .models import Notification
from .serializers import NotificationSerializer

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class NotificationListView(generics.GenericAPIView):
    """
    GET: the user's notifications, newest first.
    ?includeRead=false hides read ones, ?type= filters by type,
    ?limit= / ?offset= paginate.
    """
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        queryset = Notification.objects.filter(user=self.request.user)
        params = self.request.query_params
        if not parse_bool(params.get('includeRead'), default=True):
            queryset = queryset.filter(read_at__isnull=True)
        notification_type = params.get('type')
        if notification_type:
            queryset = queryset.filter(type=notification_type)
        return queryset

    def get(self, request, *args, **kwargs):
        queryset = self.get_queryset()
        limit = parse_int(request.query_params.get('limit'), DEFAULT_LIMIT, minimum=1, maximum=MAX_LIMIT)
        offset = parse_int(request.query_params.get('offset'), 0)
        total = queryset.count()
        page = queryset[offset:offset + limit]
        return Response({
            'notifications': self.get_serializer(page, many=True).data,
            'total': total,
            'hasMore': offset + limit < total,
        })

notification_list_view = NotificationListView.as_view()


class UnreadCountView(generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response({'count': services.unread_count(request.user)})

unread_count_view = UnreadCountView.as_view()


class NotificationMixin:
    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)


class NotificationReadView(NotificationMixin, generics.GenericAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        notification = services.mark_as_read(self.get_object())
        return Response(self.get_serializer(notification).data)

notification_read_view = NotificationReadView.as_view()


class NotificationUnreadView(NotificationMixin, generics.GenericAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        notification = services.mark_as_unread(self.get_object())
        return Response(self.get_serializer(notification).data)

notification_unread_view = NotificationUnreadView.as_view()


class MarkAllReadView(generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        updated = services.mark_all_as_read(request.user)
        return Response({'updated': updated})

mark_all_read_view = MarkAllReadView.as_view()


class NotificationDestroyView(NotificationMixin, generics.DestroyAPIView):
    permission_classes = [permissions.IsAuthenticated]

notification_destroy_view = NotificationDestroyView.as_view()
