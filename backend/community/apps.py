"""
Community App Configuration
"""
from django.apps import AppConfig


class CommunityConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'community'
    verbose_name = 'Movie community'

    def ready(self):
        # Import signals when app is ready
        import community.signals  # noqa
