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
            name='SavedView',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uid', models.CharField(default=api.utils.generate_uid, editable=False, max_length=32, unique=True, verbose_name='uid')),
                ('name', models.CharField(max_length=255, verbose_name='name')),
                ('search_query', models.CharField(blank=True, max_length=255, verbose_name='search query')),
                ('filters', models.JSONField(blank=True, default=list, verbose_name='entity filters')),
                ('priority', models.CharField(blank=True, max_length=20, verbose_name='priority')),
                ('due', models.CharField(blank=True, max_length=20, verbose_name='due')),
                ('defer', models.CharField(blank=True, max_length=20, verbose_name='defer')),
                ('tags', models.JSONField(blank=True, default=list, verbose_name='tags')),
                ('extras', models.JSONField(blank=True, default=list, verbose_name='extras')),
                ('recurring', models.CharField(blank=True, max_length=20, verbose_name='recurring')),
                ('is_pinned', models.BooleanField(default=False, verbose_name='pinned')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='saved_views', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Saved view',
                'verbose_name_plural': 'Saved views',
                'ordering': ['-is_pinned', '-created_at'],
            },
        ),
    ]
