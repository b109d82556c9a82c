from django.urls import path

from hallchat.messages.api.views import ConversationsView
from hallchat.messages.api.views import HallMessagesView
from hallchat.messages.api.views import PrivateMessagesView

app_name = "messages"

urlpatterns = [
    path("hall/", HallMessagesView.as_view(), name="hall"),
    path("private/<int:user_id>/", PrivateMessagesView.as_view(), name="private"),
    path("conversations/", ConversationsView.as_view(), name="conversations"),
]
