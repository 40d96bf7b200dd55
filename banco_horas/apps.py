from django.apps import AppConfig


class BancoHorasConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'banco_horas'
    verbose_name = 'Banco de horas'

    def ready(self):
        import banco_horas.signals  # noqa
