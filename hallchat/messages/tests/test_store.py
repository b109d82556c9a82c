import pytest
from asgiref.sync import async_to_sync

from hallchat.messages.models import Message
from hallchat.messages.store import DjangoMessageStore
from hallchat.messages.store import DjangoUserDirectory
from hallchat.messages.store import conversations_for
from hallchat.realtime.exceptions import InvalidPayload
from hallchat.realtime.payloads import AudioPayload
from hallchat.realtime.payloads import ImagePayload
from hallchat.realtime.payloads import MessageDraft
from hallchat.realtime.payloads import MessageKind
from hallchat.realtime.payloads import TextPayload
from hallchat.realtime.ports import MessageFilter

pytestmark = pytest.mark.django_db


@pytest.fixture
def store():
    return DjangoMessageStore()


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


def append(store, **kwargs):
    return async_to_sync(store.append)(MessageDraft(**kwargs))


def query(store, **kwargs):
    return async_to_sync(store.query)(MessageFilter(**kwargs))


def test_append_assigns_id_and_timestamp(store, user):
    message = append(
        store, kind=MessageKind.PUBLIC, owner_id=str(user.pk), payload=TextPayload("hi")
    )

    row = Message.objects.get(pk=message.id)
    assert message.id == str(row.pk)
    assert message.created_at == row.created_at
    assert message.receiver_id is None
    assert row.text == "hi"


def test_media_payloads_round_trip_through_rows(store, user, bob):
    image = append(
        store,
        kind=MessageKind.PRIVATE,
        owner_id=str(user.pk),
        receiver_id=str(bob.pk),
        payload=ImagePayload("img/1.png"),
    )
    audio = append(
        store,
        kind=MessageKind.PRIVATE,
        owner_id=str(bob.pk),
        receiver_id=str(user.pk),
        payload=AudioPayload("voice/1.ogg"),
    )

    history = query(
        store,
        kind=MessageKind.PRIVATE,
        participant_ids=(str(user.pk), str(bob.pk)),
    )
    assert [m.payload for m in history] == [image.payload, audio.payload]


def test_query_separates_hall_from_private_and_pairs(store, user, bob, carol):
    hall = append(
        store, kind=MessageKind.PUBLIC, owner_id=str(bob.pk), payload=TextPayload("a")
    )
    to_bob = append(
        store,
        kind=MessageKind.PRIVATE,
        owner_id=str(user.pk),
        receiver_id=str(bob.pk),
        payload=TextPayload("b"),
    )
    append(
        store,
        kind=MessageKind.PRIVATE,
        owner_id=str(user.pk),
        receiver_id=str(carol.pk),
        payload=TextPayload("c"),
    )

    assert [m.id for m in query(store, kind=MessageKind.PUBLIC)] == [hall.id]
    pair = query(
        store,
        kind=MessageKind.PRIVATE,
        participant_ids=(str(bob.pk), str(user.pk)),
    )
    assert [m.id for m in pair] == [to_bob.id]


def test_query_since_returns_only_newer(store, user):
    first = append(
        store, kind=MessageKind.PUBLIC, owner_id=str(user.pk), payload=TextPayload("1")
    )
    second = append(
        store, kind=MessageKind.PUBLIC, owner_id=str(user.pk), payload=TextPayload("2")
    )

    newer = query(store, kind=MessageKind.PUBLIC, since_id=first.id)
    assert [m.id for m in newer] == [second.id]


def test_append_rejects_non_numeric_owner(store):
    with pytest.raises(InvalidPayload):
        append(
            store, kind=MessageKind.PUBLIC, owner_id="alice", payload=TextPayload("x")
        )


def test_conversations_list_latest_message_per_partner(store, user, bob, carol):
    append(
        store,
        kind=MessageKind.PRIVATE,
        owner_id=str(user.pk),
        receiver_id=str(bob.pk),
        payload=TextPayload("old"),
    )
    to_carol = append(
        store,
        kind=MessageKind.PRIVATE,
        owner_id=str(carol.pk),
        receiver_id=str(user.pk),
        payload=TextPayload("hey"),
    )
    latest_bob = append(
        store,
        kind=MessageKind.PRIVATE,
        owner_id=str(bob.pk),
        receiver_id=str(user.pk),
        payload=TextPayload("new"),
    )

    conversations = conversations_for(user.pk)

    assert [c["userId"] for c in conversations] == [str(bob.pk), str(carol.pk)]
    assert conversations[0]["lastMessage"]["id"] == latest_bob.id
    assert conversations[1]["lastMessage"]["id"] == to_carol.id


def test_directory_knows_active_users_only(user, make_user):
    directory = DjangoUserDirectory()
    inactive = make_user("ghost", is_active=False)
    exists = async_to_sync(directory.exists)

    assert exists(str(user.pk)) is True
    assert exists(str(inactive.pk)) is False
    assert exists("999999") is False
    assert exists("not-a-number") is False


@pytest.mark.django_db(transaction=True)
def test_append_for_missing_owner_is_not_retryable(store):
    with pytest.raises(InvalidPayload) as excinfo:
        append(
            store,
            kind=MessageKind.PUBLIC,
            owner_id="999999",
            payload=TextPayload("ghost"),
        )

    assert excinfo.value.retryable is False
    assert Message.objects.count() == 0
