import logging

from rest_framework import generics, permissions, status
from rest_framework.response import Response

from .models import SavedView
from .serializers import SavedViewSerializer
from .services import UniversalSearch

logger = logging.getLogger(__name__)


class UniversalSearchView(generics.GenericAPIView):
    """
    GET /search/?q=&filters=Task,Project&priority=&due=&defer=&tags=&recurring=
    &extras=&excludeSubtasks=&limit=&offset=
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(UniversalSearch(request.user, request.query_params).run())

universal_search_view = UniversalSearchView.as_view()


class SavedViewMixin:
    serializer_class = SavedViewSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'uid'

    def get_queryset(self):
        return SavedView.objects.filter(user=self.request.user)


class SavedViewListCreateView(SavedViewMixin, generics.ListCreateAPIView):
    """Pinned views first, then newest."""

saved_view_list_create_view = SavedViewListCreateView.as_view()


class PinnedSavedViewListView(SavedViewMixin, generics.ListAPIView):
    def get_queryset(self):
        return super().get_queryset().filter(is_pinned=True)

pinned_saved_view_list_view = PinnedSavedViewListView.as_view()


class SavedViewDetailView(SavedViewMixin, generics.RetrieveUpdateDestroyAPIView):
    def destroy(self, request, *args, **kwargs):
        self.get_object().delete()
        return Response({'message': 'View successfully deleted'}, status=status.HTTP_200_OK)

saved_view_detail_view = SavedViewDetailView.as_view()


class SavedViewPinView(SavedViewMixin, generics.GenericAPIView):
    """POST toggles the pin; an explicit boolean `is_pinned` sets it."""

    def post(self, request, *args, **kwargs):
        view = self.get_object()
        pinned = request.data.get('is_pinned')
        view.is_pinned = pinned if isinstance(pinned, bool) else not view.is_pinned
        view.save(update_fields=['is_pinned', 'updated_at'])
        return Response(self.get_serializer(view).data)

saved_view_pin_view = SavedViewPinView.as_view()
