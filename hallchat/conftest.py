import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

User = get_user_model()


@pytest.fixture
def make_user(db):
    def _make(username: str, **extra):
        return User.objects.create_user(
            username=username,
            email=f"{username}@example.com",
            password="TestPass123!",  # noqa: S106
            **extra,
        )

    return _make


@pytest.fixture
def user(make_user):
    return make_user("alice", name="Alice")


@pytest.fixture
def api_client(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client
