from celery import Celery

from app.config import settings


def build_beat_schedule() -> dict:
    return {
        "send_due_reminders": {
            "task": "app.tasks.reminders.send_due_reminders",
            "schedule": float(max(settings.reminder_interval_seconds, 60)),
        },
    }


celery_app = Celery("signflow")
celery_app.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
)
celery_app.conf.beat_schedule = build_beat_schedule()
celery_app.autodiscover_tasks(["app.tasks"])
