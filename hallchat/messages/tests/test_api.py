from http import HTTPStatus

import pytest
from django.urls import reverse

from hallchat.messages.models import Message

pytestmark = pytest.mark.django_db


@pytest.fixture
def bob(make_user):
    return make_user("bob")


def hall_url():
    return reverse("api_v1:messages:hall")


def private_url(user_id):
    return reverse("api_v1:messages:private", kwargs={"user_id": user_id})


def test_history_requires_authentication(client):
    resp = client.get(hall_url())
    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_post_to_hall_then_read_history(api_client, user):
    resp = api_client.post(hall_url(), {"text": "  hello hall "}, format="json")

    assert resp.status_code == HTTPStatus.CREATED
    body = resp.json()
    assert body["kind"] == "public"
    assert body["ownerId"] == str(user.pk)
    assert body["payload"] == {"type": "text", "text": "hello hall"}

    history = api_client.get(hall_url()).json()
    assert [m["id"] for m in history] == [body["id"]]
    assert history[0]["payload"] == body["payload"]


def test_post_with_tagged_payload(api_client):
    resp = api_client.post(
        hall_url(), {"payload": {"type": "image", "ref": "img/9.png"}}, format="json"
    )
    assert resp.status_code == HTTPStatus.CREATED
    assert resp.json()["payload"] == {"type": "image", "ref": "img/9.png"}


def test_post_without_content_is_rejected(api_client):
    resp = api_client.post(hall_url(), {"text": "   "}, format="json")
    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert Message.objects.count() == 0


def test_hall_history_since(api_client, user):
    first = Message.objects.create(owner=user, text="one")
    second = Message.objects.create(owner=user, text="two")

    resp = api_client.get(hall_url(), {"since": first.pk})

    assert [m["id"] for m in resp.json()] == [str(second.pk)]


def test_private_conversation_round_trip(api_client, user, bob):
    resp = api_client.post(private_url(bob.pk), {"text": "hi bob"}, format="json")
    assert resp.status_code == HTTPStatus.CREATED
    assert resp.json()["receiverId"] == str(bob.pk)

    Message.objects.create(
        kind=Message.Kind.PRIVATE, owner=bob, receiver=user, text="hi alice"
    )

    history = api_client.get(private_url(bob.pk)).json()
    assert [m["payload"]["text"] for m in history] == ["hi bob", "hi alice"]
    assert api_client.get(hall_url()).json() == []


def test_private_history_excludes_other_conversations(api_client, user, bob, make_user):
    carol = make_user("carol")
    Message.objects.create(
        kind=Message.Kind.PRIVATE, owner=carol, receiver=bob, text="not yours"
    )

    assert api_client.get(private_url(bob.pk)).json() == []
    assert api_client.get(private_url(carol.pk)).json() == []


def test_private_to_unknown_user(api_client):
    assert api_client.get(private_url(999999)).status_code == HTTPStatus.NOT_FOUND
    resp = api_client.post(private_url(999999), {"text": "hello?"}, format="json")
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_private_to_self_is_rejected(api_client, user):
    resp = api_client.post(private_url(user.pk), {"text": "me"}, format="json")
    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert resp.json()["code"] == "self_message"


def test_conversations(api_client, user, bob):
    Message.objects.create(
        kind=Message.Kind.PRIVATE, owner=bob, receiver=user, text="ping"
    )

    resp = api_client.get(reverse("api_v1:messages:conversations"))

    assert resp.status_code == HTTPStatus.OK
    (conversation,) = resp.json()
    assert conversation["userId"] == str(bob.pk)
    assert conversation["lastMessage"]["ownerId"] == str(bob.pk)
    assert conversation["lastMessage"]["payload"] == {"type": "text", "text": "ping"}
