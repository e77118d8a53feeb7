from django.apps import AppConfig


class IntakeGuardConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "intakeguard"
    verbose_name = "IntakeGuard review queue"
