from django.apps import AppConfig


class GaugeConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "gauge"

    def ready(self) -> None:
        from django.conf import settings

        from .assets import register_handle_font

        register_handle_font(str(settings.ASSETS_DIR))
