import logging

from celery import Celery
from celery.schedules import crontab

from vispark.config import settings

logging.basicConfig(level=settings.log_level)

celery_app = Celery("vispark", broker=settings.celery_broker_url)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    "renew-push-subscriptions": {
        "task": "vispark.tasks.push.renew_push_subscriptions",
        "schedule": crontab(minute=0, hour="*/6"),
    },
}

celery_app.autodiscover_tasks(["vispark.tasks"], related_name="push")
