from celery import Celery

from entitlement_api.business.entitlement.notifications import process_due_notifications
from entitlement_api.core.config import get_settings
from entitlement_api.core.database import SessionLocal

settings = get_settings()

celery_app = Celery("nexa_entitlement", broker=settings.redis_url, backend=settings.redis_url)
celery_app.conf.beat_schedule = {
    "entitlement-process-due-notifications": {
        "task": "entitlement_api.tasks.process_due_notifications",
        "schedule": float(settings.notification_poll_seconds),
    },
}


@celery_app.task(name="entitlement_api.tasks.process_due_notifications")
def process_due_notifications_task() -> dict[str, object]:
    session = SessionLocal()
    try:
        result = process_due_notifications(session)
    finally:
        session.close()
    return result.model_dump(mode="json")
