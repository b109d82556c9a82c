"""Message history and HTTP submit endpoints.

Submitting over HTTP goes through the same realtime distributor as the
``message:submit`` socket event, so connected clients still get the live push.
"""

import logging

from asgiref.sync import async_to_sync
from django.contrib.auth import get_user_model
from drf_spectacular.utils import extend_schema
from rest_framework import permissions
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from hallchat.messages.api.serializers import HistoryQuerySerializer
from hallchat.messages.api.serializers import MessageSerializer
from hallchat.messages.api.serializers import MessageSubmitSerializer
from hallchat.messages.store import conversations_for
from hallchat.messages.store import messages_matching
from hallchat.realtime.apps import get_hub
from hallchat.realtime.exceptions import InvalidReceiver
from hallchat.realtime.exceptions import RealtimeError
from hallchat.realtime.exceptions import StoreUnavailable
from hallchat.realtime.payloads import MessageKind
from hallchat.realtime.ports import MessageFilter

logger = logging.getLogger(__name__)

User = get_user_model()


class ServiceUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Message store is unavailable, try again."
    default_code = "store_unavailable"


def _api_error(exc: RealtimeError) -> APIException:
    if isinstance(exc, StoreUnavailable):
        return ServiceUnavailable()
    if isinstance(exc, InvalidReceiver):
        return NotFound({"detail": exc.message, "code": exc.code})
    return ValidationError({"detail": exc.message, "code": exc.code})


def _since(request):
    query = HistoryQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    since = query.validated_data.get("since")
    return str(since) if since else None


def _submit(request, kind: MessageKind, receiver_id=None):
    body = MessageSubmitSerializer(data=request.data)
    body.is_valid(raise_exception=True)
    try:
        message = async_to_sync(get_hub().submit_message)(
            kind,
            str(request.user.pk),
            receiver_id,
            body.validated_data["parsed_payload"],
        )
    except RealtimeError as exc:
        logger.info("HTTP submit rejected for %s: %s", request.user.pk, exc.code)
        raise _api_error(exc) from exc
    return Response(message.to_wire(), status=status.HTTP_201_CREATED)


class HallMessagesView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(tags=["Messages"], responses=MessageSerializer(many=True))
    def get(self, request):
        rows = messages_matching(
            MessageFilter(kind=MessageKind.PUBLIC, since_id=_since(request))
        )
        return Response(MessageSerializer(rows, many=True).data)

    @extend_schema(tags=["Messages"], request=MessageSubmitSerializer)
    def post(self, request):
        return _submit(request, MessageKind.PUBLIC)


class PrivateMessagesView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def _partner(self, user_id: int):
        if not User.objects.filter(pk=user_id).exists():
            msg = "User not found"
            raise NotFound(msg)
        return str(user_id)

    @extend_schema(tags=["Messages"], responses=MessageSerializer(many=True))
    def get(self, request, user_id: int):
        partner = self._partner(user_id)
        rows = messages_matching(
            MessageFilter(
                kind=MessageKind.PRIVATE,
                participant_ids=(str(request.user.pk), partner),
                since_id=_since(request),
            )
        )
        return Response(MessageSerializer(rows, many=True).data)

    @extend_schema(tags=["Messages"], request=MessageSubmitSerializer)
    def post(self, request, user_id: int):
        return _submit(request, MessageKind.PRIVATE, str(user_id))


class ConversationsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(tags=["Messages"])
    def get(self, request):
        return Response(conversations_for(request.user.pk))
