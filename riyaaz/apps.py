from django.apps import AppConfig


class RiyaazConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "riyaaz"
