from django.apps import AppConfig


class ProjectionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "projections"

    def ready(self):
        from projections.base import projection_registry
        from projections.ledger import ledger_projection

        projection_registry.register(ledger_projection)
