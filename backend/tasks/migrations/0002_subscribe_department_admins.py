from django.db import migrations


def subscribe_admins_to_member_tasks(apps, schema_editor):
    """
    Subscribe the admins of every department to the existing tasks owned by
    that department's members (admins are not subscribed to their own tasks).
    """
    AreasMember = apps.get_model('areas', 'AreasMember')
    Task = apps.get_model('tasks', 'Task')
    TaskSubscriber = apps.get_model('tasks', 'TaskSubscriber')

    admins_by_area = {}
    for membership in AreasMember.objects.filter(role='admin'):
        admins_by_area.setdefault(membership.area_id, []).append(membership.user_id)

    for membership in AreasMember.objects.all():
        admin_ids = [a for a in admins_by_area.get(membership.area_id, []) if a != membership.user_id]
        if not admin_ids:
            continue
        for task_id in Task.objects.filter(user_id=membership.user_id).values_list('id', flat=True):
            for admin_id in admin_ids:
                TaskSubscriber.objects.get_or_create(task_id=task_id, user_id=admin_id)


class Migration(migrations.Migration):

    dependencies = [
        ('tasks', '0001_initial'),
        ('areas', '0002_enforce_single_department'),
    ]

    operations = [
        migrations.RunPython(subscribe_admins_to_member_tasks, migrations.RunPython.noop),
    ]
