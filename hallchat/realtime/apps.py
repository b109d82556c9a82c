from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class RealtimeConfig(AppConfig):
    name = "hallchat.realtime"
    verbose_name = _("Realtime")

    def ready(self):
        from hallchat.realtime.hub import RealtimeHub  # noqa: PLC0415

        # One hub per process; the ASGI app and the REST views share it.
        self.hub = RealtimeHub.from_settings()


def get_hub():
    from django.apps import apps  # noqa: PLC0415

    return apps.get_app_config("realtime").hub
