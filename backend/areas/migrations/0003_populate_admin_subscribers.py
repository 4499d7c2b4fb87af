from django.db import migrations


def subscribe_admin_members(apps, schema_editor):
    """Every department admin is subscribed to their department (source admin_role)."""
    AreasMember = apps.get_model('areas', 'AreasMember')
    AreasSubscriber = apps.get_model('areas', 'AreasSubscriber')

    for membership in AreasMember.objects.filter(role='admin'):
        AreasSubscriber.objects.get_or_create(
            area_id=membership.area_id,
            user_id=membership.user_id,
            source='admin_role',
            defaults={'added_by_id': membership.user_id},
        )


def remove_admin_subscribers(apps, schema_editor):
    AreasSubscriber = apps.get_model('areas', 'AreasSubscriber')
    AreasSubscriber.objects.filter(source='admin_role').delete()


class Migration(migrations.Migration):

    dependencies = [
        ('areas', '0002_enforce_single_department'),
    ]

    operations = [
        migrations.RunPython(subscribe_admin_members, remove_admin_subscribers),
    ]
