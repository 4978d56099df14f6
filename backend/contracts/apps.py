# backend/contracts/apps.py
from django.apps import AppConfig


class ContractsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "contracts"
    verbose_name = "Contract lifecycle"

    def ready(self):
        from contracts import signals

        signals.connect()
