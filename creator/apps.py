from django.apps import AppConfig


class CreatorConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'creator'
    verbose_name = 'Exam Creator'
