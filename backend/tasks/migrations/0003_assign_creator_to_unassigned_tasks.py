from django.db import migrations
from django.db.models import F


def assign_creator(apps, schema_editor):
    """Tasks without an assignee are assigned to the user who created them."""
    Task = apps.get_model('tasks', 'Task')
    Task.objects.filter(assigned_to__isnull=True).update(assigned_to=F('user'))


class Migration(migrations.Migration):

    dependencies = [
        ('tasks', '0002_subscribe_department_admins'),
    ]

    operations = [
        migrations.RunPython(assign_creator, migrations.RunPython.noop),
    ]
