from tourbook.tasks.celery_app import celery
from tourbook.tasks import worker_jobs


@celery.task(name="tourbook.tasks.jobs.process_notification_queue")
def process_notification_queue(limit: int = 50):
    return worker_jobs.process_notification_queue(limit=limit)
