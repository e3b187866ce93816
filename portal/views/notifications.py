from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.serializers.notifications import NotificationSerializer
from portal.services import notifications as svc


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications(request):
    """Unread notifications of the caller, newest first."""
    return Response({'ok': True, 'data': NotificationSerializer(svc.list_unread(request.user), many=True).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_read(request, notification_id: int):
    n = svc.mark_read(request.user, notification_id)
    return Response({'ok': True, 'data': NotificationSerializer(n).data})
