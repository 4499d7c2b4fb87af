import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Action',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('verb', models.CharField(max_length=50, verbose_name='verb')),
                ('resource_type', models.CharField(choices=[('area', 'Area'), ('project', 'Project'), ('task', 'Task')], max_length=20, verbose_name='resource type')),
                ('resource_uid', models.CharField(max_length=32, verbose_name='resource uid')),
                ('access_level', models.CharField(blank=True, choices=[('ro', 'Read only'), ('rw', 'Read & write'), ('admin', 'Admin')], max_length=10, null=True, verbose_name='access level')),
                ('metadata', models.JSONField(blank=True, null=True, verbose_name='metadata')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='performed_actions', to=settings.AUTH_USER_MODEL, verbose_name='actor')),
                ('target_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='targeted_actions', to=settings.AUTH_USER_MODEL, verbose_name='target user')),
            ],
            options={
                'verbose_name': 'Action',
                'verbose_name_plural': 'Actions',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Permission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('resource_type', models.CharField(choices=[('area', 'Area'), ('project', 'Project'), ('task', 'Task')], max_length=20, verbose_name='resource type')),
                ('resource_uid', models.CharField(max_length=32, verbose_name='resource uid')),
                ('access_level', models.CharField(choices=[('ro', 'Read only'), ('rw', 'Read & write'), ('admin', 'Admin')], max_length=10, verbose_name='access level')),
                ('propagation', models.CharField(choices=[('direct', 'Direct share'), ('inherited', 'Inherited from parent resource'), ('area_membership', 'Area membership'), ('assignment', 'Task assignment'), ('subscription', 'Task subscription')], default='direct', max_length=20, verbose_name='propagation')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('granted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='granted_permissions', to=settings.AUTH_USER_MODEL, verbose_name='granted by')),
                ('source_action', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='permissions', to='access.action', verbose_name='source action')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='resource_permissions', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Permission',
                'verbose_name_plural': 'Permissions',
            },
        ),
        migrations.AddConstraint(
            model_name='permission',
            constraint=models.UniqueConstraint(fields=('user', 'resource_type', 'resource_uid'), name='unique_user_resource_permission'),
        ),
        migrations.AddIndex(
            model_name='permission',
            index=models.Index(fields=['resource_type', 'resource_uid'], name='permission_resource_idx'),
        ),
    ]
