from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from hallchat.realtime.payloads import AudioPayload
from hallchat.realtime.payloads import ImagePayload
from hallchat.realtime.payloads import Message as RealtimeMessage
from hallchat.realtime.payloads import MessageKind
from hallchat.realtime.payloads import TextPayload


class Message(models.Model):
    """Append-only chat message; rows are never edited by the realtime core."""

    class Kind(models.TextChoices):
        PUBLIC = "public", _("Public")
        PRIVATE = "private", _("Private")

    class PayloadType(models.TextChoices):
        TEXT = "text", _("Text")
        IMAGE = "image", _("Image")
        AUDIO = "audio", _("Audio")

    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.PUBLIC)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
    )
    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="received_messages",
        null=True,
        blank=True,
    )
    payload_type = models.CharField(
        max_length=10, choices=PayloadType.choices, default=PayloadType.TEXT
    )
    text = models.TextField(blank=True)
    # Image/audio reference (URL or storage key), set iff payload_type != text.
    media_ref = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["kind", "created_at"], name="message_kind_created_idx"
            ),
            models.Index(
                fields=["owner", "receiver"], name="message_owner_receiver_idx"
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"[{self.kind}] {self.owner_id}: {self.payload_type}"

    def to_realtime(self) -> RealtimeMessage:
        if self.payload_type == self.PayloadType.IMAGE:
            payload = ImagePayload(self.media_ref)
        elif self.payload_type == self.PayloadType.AUDIO:
            payload = AudioPayload(self.media_ref)
        else:
            payload = TextPayload(self.text)
        return RealtimeMessage(
            id=str(self.pk),
            kind=MessageKind(self.kind),
            owner_id=str(self.owner_id),
            receiver_id=str(self.receiver_id) if self.receiver_id else None,
            payload=payload,
            created_at=self.created_at,
        )
