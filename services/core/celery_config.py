"""
Celery Configuration - Shared app instance
"""
from celery import Celery

import settings

celery_app = Celery("family_accord", broker=settings.CELERY_BROKER_URL)
celery_app.conf.task_routes = {
    'tasks.*': {'queue': 'notifications'},
}
celery_app.conf.task_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.task_ignore_result = True
