from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from hallchat.messages.models import Message
from hallchat.realtime.exceptions import InvalidPayload
from hallchat.realtime.payloads import parse_payload


class MessageSerializer(serializers.ModelSerializer):
    """Same shape as the ``message:new`` socket event."""

    id = serializers.CharField(read_only=True)
    ownerId = serializers.CharField(source="owner_id", read_only=True)  # noqa: N815
    receiverId = serializers.CharField(  # noqa: N815
        source="receiver_id", read_only=True, allow_null=True
    )
    payload = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)  # noqa: N815

    class Meta:
        model = Message
        fields = ("id", "kind", "ownerId", "receiverId", "payload", "createdAt")
        read_only_fields = fields

    def get_payload(self, obj: Message) -> dict:
        return obj.to_realtime().payload.to_wire()


class MessageSubmitSerializer(serializers.Serializer):
    """Accepts ``{"payload": {...}}`` or the flat ``{text, imageRef, audioRef}``."""

    payload = serializers.JSONField(required=False)
    text = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    imageRef = serializers.CharField(required=False, allow_blank=True)  # noqa: N815
    audioRef = serializers.CharField(required=False, allow_blank=True)  # noqa: N815

    def validate(self, attrs):
        raw = attrs.get("payload")
        if raw is None:
            raw = {k: v for k, v in attrs.items() if k != "payload"}
        try:
            attrs["parsed_payload"] = parse_payload(raw)
        except InvalidPayload as exc:
            msg = _("Message text, image, or audio is required")
            raise serializers.ValidationError(msg) from exc
        return attrs


class HistoryQuerySerializer(serializers.Serializer):
    since = serializers.IntegerField(required=False, min_value=0)
