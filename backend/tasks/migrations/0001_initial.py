import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import api.utils
import tasks.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('projects', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Tag',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uid', models.CharField(default=api.utils.generate_uid, editable=False, max_length=32, unique=True, verbose_name='uid')),
                ('name', models.CharField(max_length=100, verbose_name='name')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tags', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Tag',
                'verbose_name_plural': 'Tags',
                'ordering': ['name'],
            },
        ),
        migrations.AddConstraint(
            model_name='tag',
            constraint=models.UniqueConstraint(fields=('user', 'name'), name='unique_tag_name_per_user'),
        ),
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uid', models.CharField(default=api.utils.generate_uid, editable=False, max_length=32, unique=True, verbose_name='uid')),
                ('name', models.CharField(max_length=255, verbose_name='name')),
                ('note', models.TextField(blank=True, verbose_name='note')),
                ('status', models.PositiveSmallIntegerField(choices=[(0, 'Not started'), (1, 'In progress'), (2, 'Done'), (3, 'Archived'), (4, 'Waiting')], default=0, verbose_name='status')),
                ('priority', models.PositiveSmallIntegerField(choices=[(0, 'Low'), (1, 'Medium'), (2, 'High'), (3, 'Critical')], default=0, verbose_name='priority')),
                ('due_date', models.DateField(blank=True, null=True, verbose_name='due date')),
                ('defer_until', models.DateTimeField(blank=True, help_text='The task is hidden from suggestions until this moment.', null=True, verbose_name='defer until')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('today', models.BooleanField(default=False, verbose_name="in today's plan")),
                ('recurrence_type', models.CharField(choices=[('none', 'Does not repeat'), ('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly'), ('monthly_weekday', 'Monthly on a weekday'), ('monthly_last_day', 'Monthly on the last day'), ('yearly', 'Yearly')], default='none', max_length=20, verbose_name='recurrence type')),
                ('recurrence_interval', models.PositiveSmallIntegerField(default=1, verbose_name='recurrence interval')),
                ('recurrence_end_date', models.DateField(blank=True, null=True, verbose_name='recurrence end date')),
                ('recurrence_weekday', models.PositiveSmallIntegerField(blank=True, null=True, verbose_name='recurrence weekday')),
                ('recurrence_weekdays', models.JSONField(blank=True, default=list, verbose_name='recurrence weekdays')),
                ('recurrence_month_day', models.PositiveSmallIntegerField(blank=True, null=True, verbose_name='recurrence day of month')),
                ('recurrence_week_of_month', models.PositiveSmallIntegerField(blank=True, null=True, verbose_name='recurrence week of month')),
                ('completion_based', models.BooleanField(default=False, help_text='Next occurrence is computed from the completion date instead of the due date.', verbose_name='completion based')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('assigned_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_tasks', to=settings.AUTH_USER_MODEL, verbose_name='assigned to')),
                ('parent_task', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='subtasks', to='tasks.task', verbose_name='parent task')),
                ('project', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='tasks', to='projects.project', verbose_name='project')),
                ('recurring_parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='recurring_instances', to='tasks.task', verbose_name='recurring template')),
                ('tags', models.ManyToManyField(blank=True, related_name='tasks', to='tasks.tag', verbose_name='tags')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tasks', to=settings.AUTH_USER_MODEL, verbose_name='owner')),
            ],
            options={
                'verbose_name': 'Task',
                'verbose_name_plural': 'Tasks',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='TaskSubscriber',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='subscriptions', to='tasks.task', verbose_name='task')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='task_subscriptions', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Task subscriber',
                'verbose_name_plural': 'Task subscribers',
            },
        ),
        migrations.AddConstraint(
            model_name='tasksubscriber',
            constraint=models.UniqueConstraint(fields=('task', 'user'), name='unique_task_subscriber'),
        ),
        migrations.AddField(
            model_name='task',
            name='subscribers',
            field=models.ManyToManyField(blank=True, related_name='subscribed_tasks', through='tasks.TaskSubscriber', to=settings.AUTH_USER_MODEL, verbose_name='subscribers'),
        ),
        migrations.AddConstraint(
            model_name='task',
            constraint=models.UniqueConstraint(condition=models.Q(('recurring_parent__isnull', False)), fields=('recurring_parent', 'due_date'), name='unique_recurring_instance_per_date'),
        ),
        migrations.CreateModel(
            name='RecurringCompletion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('original_due_date', models.DateField(blank=True, null=True, verbose_name='original due date')),
                ('completed_at', models.DateTimeField(verbose_name='completed at')),
                ('skipped', models.BooleanField(default=False, verbose_name='skipped')),
                ('instance', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='tasks.task', verbose_name='completed instance')),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recurring_completions', to='tasks.task', verbose_name='recurring template')),
            ],
            options={
                'verbose_name': 'Recurring completion',
                'verbose_name_plural': 'Recurring completions',
                'ordering': ['-completed_at'],
            },
        ),
        migrations.CreateModel(
            name='TaskAttachment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uid', models.CharField(default=api.utils.generate_uid, editable=False, max_length=32, unique=True, verbose_name='uid')),
                ('file', models.FileField(max_length=500, upload_to=tasks.models.attachment_upload_to, verbose_name='file')),
                ('original_filename', models.CharField(max_length=255, verbose_name='original filename')),
                ('file_size', models.PositiveIntegerField(verbose_name='file size')),
                ('mime_type', models.CharField(blank=True, max_length=255, verbose_name='mime type')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attachments', to='tasks.task', verbose_name='task')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='task_attachments', to=settings.AUTH_USER_MODEL, verbose_name='uploaded by')),
            ],
            options={
                'verbose_name': 'Task attachment',
                'verbose_name_plural': 'Task attachments',
                'ordering': ['created_at'],
            },
        ),
    ]
