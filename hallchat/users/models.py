from django.contrib.auth.models import AbstractUser
from django.db.models import CharField
from django.db.models import EmailField
from django.db.models import URLField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for hallchat.
    The realtime layer identifies users by ``str(pk)``.
    """

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Name of User"), blank=True, max_length=255)
    email = EmailField(_("email address"), unique=True)
    avatar = URLField(_("Avatar"), blank=True, max_length=500)
    first_name = None  # type: ignore[assignment]
    last_name = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return self.name or self.username
