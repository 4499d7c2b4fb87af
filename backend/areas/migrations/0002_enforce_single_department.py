import logging

from django.db import migrations, models

logger = logging.getLogger(__name__)


def keep_first_membership(apps, schema_editor):
    """
    A user may only belong to one department. Keep the oldest membership
    (lowest id) of every user and drop the rest.
    """
    AreasMember = apps.get_model('areas', 'AreasMember')

    seen = set()
    duplicates = []
    for membership in AreasMember.objects.order_by('user_id', 'id'):
        if membership.user_id in seen:
            duplicates.append(membership.id)
        else:
            seen.add(membership.user_id)

    if duplicates:
        AreasMember.objects.filter(id__in=duplicates).delete()
        logger.info(f"Removed {len(duplicates)} duplicate department memberships")


class Migration(migrations.Migration):

    dependencies = [
        ('areas', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(keep_first_membership, migrations.RunPython.noop),
        migrations.RemoveConstraint(
            model_name='areasmember',
            name='unique_area_member',
        ),
        migrations.AddConstraint(
            model_name='areasmember',
            constraint=models.UniqueConstraint(fields=('user',), name='unique_department_per_user'),
        ),
    ]
