import logging

from rest_framework import generics, permissions, status
from rest_framework.response import Response

from api.utils import parse_int
from .models import InboxItem
from .serializers import InboxItemSerializer

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class InboxListCreateView(generics.GenericAPIView):
    """
    GET: the user's unprocessed items (?limit= / ?offset=).
    POST: capture a new item.
    """
    serializer_class = InboxItemSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return InboxItem.objects.filter(user=self.request.user, status=InboxItem.Status.ADDED)

    def get(self, request, *args, **kwargs):
        queryset = self.get_queryset()
        limit = parse_int(request.query_params.get('limit'), DEFAULT_LIMIT, minimum=1, maximum=MAX_LIMIT)
        offset = parse_int(request.query_params.get('offset'), 0)
        total = queryset.count()
        return Response({
            'items': self.get_serializer(queryset[offset:offset + limit], many=True).data,
            'pagination': {'total': total, 'limit': limit, 'offset': offset},
        })

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)

inbox_list_create_view = InboxListCreateView.as_view()


class InboxItemMixin:
    lookup_field = 'uid'

    def get_queryset(self):
        return InboxItem.objects.filter(user=self.request.user).exclude(status=InboxItem.Status.DELETED)


class InboxItemDetailView(InboxItemMixin, generics.RetrieveUpdateDestroyAPIView):
    """DELETE only flags the item as deleted."""
    serializer_class = InboxItemSerializer
    permission_classes = [permissions.IsAuthenticated]

    def destroy(self, request, *args, **kwargs):
        item = self.get_object()
        item.status = InboxItem.Status.DELETED
        item.save(update_fields=['status', 'updated_at'])
        return Response({'message': 'Inbox item successfully deleted'}, status=status.HTTP_200_OK)

inbox_item_detail_view = InboxItemDetailView.as_view()


class InboxItemProcessView(InboxItemMixin, generics.GenericAPIView):
    serializer_class = InboxItemSerializer
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        item = self.get_object()
        item.status = InboxItem.Status.PROCESSED
        item.save(update_fields=['status', 'updated_at'])
        logger.info(f"Inbox item {item.uid} processed by user {request.user.id}")
        return Response(self.get_serializer(item).data)

    patch = post

inbox_item_process_view = InboxItemProcessView.as_view()
