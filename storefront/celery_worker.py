# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, SWEEP_INTERVAL_SECONDS

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "storefront.tasks.sweep",
    "storefront.services.notification_service",
)

# Konfiguracja beat schedule
celery_app.conf.beat_schedule = {
    "sweep-expired-reservations": {
        "task": "storefront.tasks.sweep.sweep_expired_reservations_task",
        "schedule": float(SWEEP_INTERVAL_SECONDS),  # co 5 minut
    },
}

celery_app.conf.timezone = "UTC"
