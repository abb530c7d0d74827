from celery import Celery
from celery.signals import setup_logging

from referral_engine.core.config import get_settings
from referral_engine.core.logging import configure_logging

MAINTENANCE_QUEUE = "referral_maintenance"

settings = get_settings()

celery_app = Celery(
    "referral_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "referral_engine.workers.tasks.promotions_maintenance",
        "referral_engine.workers.tasks.credits_reconciliation",
    ],
)

celery_app.conf.update(
    task_default_queue=MAINTENANCE_QUEUE,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="Europe/Rome",
    enable_utc=True,
)


@setup_logging.connect
def _configure_worker_logging(**_: object) -> None:
    configure_logging(get_settings().log_level, component="worker")


@celery_app.task(name="referral_engine.workers.celery_app.ping")
def ping() -> str:
    return "pong"
