import os

from celery import Celery
from celery.signals import task_postrun, task_prerun

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'glohorizon.settings.prod')

app = Celery('glohorizon')
app.config_from_object('django.conf:settings', namespace='CELERY')
# notification tasks live in a subpackage, which autodiscovery does not walk
app.autodiscover_tasks()
app.autodiscover_tasks(['bookings.notifications'])


@task_prerun.connect
@task_postrun.connect
def reset_db_connections(**kwargs):
    """Workers are long-lived; drop connections the database has already closed."""
    from django.db import close_old_connections
    close_old_connections()
