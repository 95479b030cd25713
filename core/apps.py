import atexit

from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'

    dashboard_cache = None

    def ready(self):
        # One cache client per process; closed when the interpreter exits.
        # It is shared by request threads and the upstream fetch pool, so the
        # configured backend must be thread-safe (RedisCache and LocMemCache are).
        from core.services.view_cache import DashboardCache

        self.dashboard_cache = DashboardCache.from_settings()
        atexit.register(self.dashboard_cache.close)
