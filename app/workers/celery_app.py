"""Celery app bootstrap."""

from celery import Celery

from app.config import get_settings

settings = get_settings()

celery_app = Celery(
    "learnpath_billing",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
)

celery_app.autodiscover_tasks(["app.workers"], related_name="tasks_provisioning")
