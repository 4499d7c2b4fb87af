import os
from dotenv import load_dotenv
from django.conf import settings
load_dotenv()  # same .env as manage.py and wsgi.py
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'deskhome.settings')

app = Celery('deskhome')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks(lambda: settings.INSTALLED_APPS)
app.autodiscover_tasks(['tasks'], related_name='celery_tasks')

app.conf.beat_schedule = {
    # Keep the upcoming window of every recurring template materialized.
    'generate-recurring-instances': {
        'task': 'tasks.celery_tasks.generate_all_recurring_instances',
        'schedule': crontab(minute=5, hour='*/6'),
    },
}
