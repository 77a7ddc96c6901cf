from django.apps import AppConfig


class FieldCollectionConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "field_collection"
    label = "field_collection"
    verbose_name = "Field collection"
