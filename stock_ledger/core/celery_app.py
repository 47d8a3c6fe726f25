from celery import Celery
from stock_ledger.core.config import settings
import sys

# Create Celery app
celery_app = Celery(
    "stock_ledger",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "stock_ledger.workers.celery_tasks.reconciliation_tasks",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
)

# Windows-specific configuration
if sys.platform == 'win32':
    celery_app.conf.update(
        worker_pool='threads',
        worker_concurrency=4
    )

celery_app.conf.beat_schedule = {
    'refresh-reconciliation-summaries': {
        'task': 'stock_ledger.workers.celery_tasks.reconciliation_tasks.refresh_reconciliation_summaries',
        'schedule': settings.SUMMARY_REFRESH_INTERVAL_SECONDS,
    },
    'retry-pending-postings': {
        'task': 'stock_ledger.workers.celery_tasks.reconciliation_tasks.retry_pending_postings',
        'schedule': settings.PENDING_POSTING_RETRY_SECONDS,
    },
}

celery_app.conf.timezone = 'UTC'
