import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import api.utils


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InboxItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uid', models.CharField(default=api.utils.generate_uid, editable=False, max_length=32, unique=True, verbose_name='uid')),
                ('content', models.TextField(verbose_name='content')),
                ('title', models.CharField(blank=True, max_length=255, verbose_name='title')),
                ('status', models.CharField(choices=[('added', 'Added'), ('processed', 'Processed'), ('deleted', 'Deleted')], default='added', max_length=20, verbose_name='status')),
                ('source', models.CharField(default='manual', max_length=50, verbose_name='source')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='inbox_items', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Inbox item',
                'verbose_name_plural': 'Inbox items',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', 'status'], name='inbox_user_status_idx')],
            },
        ),
    ]
