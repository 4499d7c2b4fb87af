import logging

from django.contrib.auth import get_user_model
from rest_framework import generics, permissions, status
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response

from .actions import VERB_SHARE_GRANT, VERB_SHARE_REVOKE, exec_action
from .models import Permission, Propagation, ResourceType
from .serializers import ShareActionSerializer, ShareSerializer
from .services import ACCESS_NONE, get_access

logger = logging.getLogger(__name__)

User = get_user_model()


class ShareListCreateView(generics.GenericAPIView):
    """
    GET: direct shares of a resource (?resource_type=&resource_uid=).
    POST: grant or revoke access for another user.
    """
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = ShareActionSerializer

    def _shares(self, resource_type, resource_uid):
        queryset = Permission.objects.filter(
            resource_type=resource_type,
            resource_uid=resource_uid,
            propagation=Propagation.DIRECT,
        ).select_related('user').order_by('created_at')
        return ShareSerializer(queryset, many=True).data

    def get(self, request, *args, **kwargs):
        resource_type = request.query_params.get('resource_type')
        resource_uid = request.query_params.get('resource_uid')
        if resource_type not in ResourceType.values or not resource_uid:
            raise ValidationError({"detail": "resource_type and resource_uid are required."})

        if get_access(request.user, resource_type, resource_uid) == ACCESS_NONE:
            raise NotFound('Resource not found')

        return Response({'shares': self._shares(resource_type, resource_uid)})

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if get_access(request.user, data['resource_type'], data['resource_uid']) == ACCESS_NONE:
            raise NotFound('Resource not found')

        target = User.objects.filter(email__iexact=data['target_user_email']).first()
        if target is None:
            raise NotFound('User not found')

        verb = VERB_SHARE_GRANT if data['action'] == 'grant' else VERB_SHARE_REVOKE
        action = exec_action(
            verb=verb,
            actor=request.user,
            target=target,
            resource_type=data['resource_type'],
            resource_uid=data['resource_uid'],
            access_level=data.get('access_level'),
        )

        return Response(
            {
                'action_id': action.id,
                'shares': self._shares(data['resource_type'], data['resource_uid']),
            },
            status=status.HTTP_200_OK,
        )

share_list_create_view = ShareListCreateView.as_view()
