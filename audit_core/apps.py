# audit_core/apps.py

from django.apps import AppConfig


class AuditCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "audit_core"
    verbose_name = "Audit samples"

    def ready(self):
        from . import signals  # noqa
