from django.apps import AppConfig


class PrepConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "prep"
    verbose_name = "Exam preparation tracker"
