import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bancohoras_site.settings")

app = Celery("bancohoras")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Fecho mensal: recalcula o mês anterior de todas as empresas no dia 1
app.conf.beat_schedule = {
    "recalcular-banco-horas-mensal": {
        "task": "banco_horas.tasks.recalcular_todas_empresas_task",
        "schedule": crontab(minute=30, hour=3, day_of_month=1),
    },
    "verificar-fim-periodo": {
        "task": "banco_horas.tasks.verificar_fim_periodo_task",
        "schedule": crontab(minute=0, hour=8, day_of_month=20),
    },
}
