from django.apps.config import AppConfig


class MaintenanceGateAppConfig(AppConfig):
    name = "maintenance_gate"
    verbose_name = "Maintenance gate"
