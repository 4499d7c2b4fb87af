# tasks/celery_tasks.py

import logging
from typing import Optional

from celery import shared_task
from django.db import transaction

from .models import Task
from .services import generate_recurring_instances as generate_instances_for

# Configure logging for background worker monitoring
logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,  # Max backoff of 10 minutes
    max_retries=3,
    time_limit=60,
    soft_time_limit=50
)
def generate_recurring_instances(self, task_id: int) -> Optional[int]:
    """
    Worker: materialise the upcoming instances of one recurring template.
    Input = task_id only; safe to run repeatedly.
    """
    template = Task.objects.filter(id=task_id).select_related('user').first()
    if template is None:
        logger.warning(f"Recurring template {task_id} not found. Exiting worker.")
        return None

    try:
        created = generate_instances_for(template)
    except Exception as exc:
        logger.exception(f"Instance generation failed for template {task_id}: {exc}")
        # Re-raise for Celery retry policy
        raise

    return len(created)


@shared_task(
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=3
)
def generate_all_recurring_instances() -> int:
    """Periodic sweep over every due-based recurring template."""
    template_ids = list(
        Task.objects.exclude(recurrence_type=Task.RecurrenceType.NONE)
        .filter(completion_based=False, recurring_parent__isnull=True, due_date__isnull=False)
        .exclude(status=Task.Status.ARCHIVED)
        .values_list('id', flat=True)
    )
    for task_id in template_ids:
        generate_recurring_instances.delay(task_id)

    logger.info(f"Queued instance generation for {len(template_ids)} recurring templates")
    return len(template_ids)


def schedule_instance_generation(task):
    """Queue generation once the surrounding transaction commits."""
    if not task.is_recurring_template or task.completion_based:
        return
    transaction.on_commit(lambda: generate_recurring_instances.delay(task.id))
