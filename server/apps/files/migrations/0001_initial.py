import django.utils.timezone
from django.db import migrations, models

import server.apps.files.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='GlobalPolicy',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('allowed_mime_types', models.JSONField(default=server.apps.files.models._default_mime_types, help_text='List of MIME types accepted for upload')),
                ('max_upload_size', models.BigIntegerField(help_text='Maximum upload size in bytes')),
                ('temp_file_lifetime', models.BigIntegerField(help_text='Lifetime of temporary files in seconds')),
                ('default_user_quota', models.BigIntegerField(help_text='Quota assigned to newly registered users, in bytes')),
                ('chunk_size', models.BigIntegerField(help_text='Preferred transfer chunk size advertised to clients')),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Global policy',
                'verbose_name_plural': 'Global policy',
            },
        ),
        migrations.CreateModel(
            name='InstanceConfig',
            fields=[
                ('server_id', models.CharField(max_length=128, primary_key=True, serialize=False)),
                ('provider', models.CharField(choices=[('s3', 'S3-compatible'), ('gdrive', 'Google Drive')], default='s3', max_length=32)),
                ('server_name', models.CharField(blank=True, default='', max_length=1024)),
                ('server_url', models.URLField(blank=True, default='', max_length=1024)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Instance configuration',
                'verbose_name_plural': 'Instance configurations',
            },
        ),
        migrations.CreateModel(
            name='StoredFile',
            fields=[
                ('file_id', models.CharField(max_length=255, primary_key=True, serialize=False)),
                ('mime_type', models.CharField(max_length=255)),
                ('size', models.BigIntegerField(help_text='File size in bytes')),
                ('owner_id', models.UUIDField(blank=True, db_index=True, help_text='Owner of a permanent file; empty for temporary files', null=True)),
                ('description', models.TextField(blank=True, null=True)),
                ('file_name', models.CharField(max_length=1024)),
                ('server_id', models.CharField(help_text='Broker instance that received the upload', max_length=128)),
                ('uploaded_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('download_count', models.BigIntegerField(default=0)),
                ('last_access', models.DateTimeField(default=django.utils.timezone.now)),
                ('delete_at', models.DateTimeField(blank=True, db_index=True, help_text='Expiry time of a temporary file', null=True)),
            ],
            options={
                'verbose_name': 'Stored file',
                'verbose_name_plural': 'Stored files',
                'ordering': ['-uploaded_at'],
                'indexes': [
                    models.Index(fields=['owner_id', '-uploaded_at'], name='files_owner_recent_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('delete_at__isnull', False), ('owner_id__isnull', True)),
                            models.Q(('delete_at__isnull', True), ('owner_id__isnull', False)),
                            _connector='OR',
                        ),
                        name='files_temporary_xor_permanent',
                    ),
                    models.CheckConstraint(condition=models.Q(('size__gte', 0)), name='files_size_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserQuota',
            fields=[
                ('user_id', models.UUIDField(primary_key=True, serialize=False)),
                ('file_count', models.BigIntegerField(default=0, help_text='Number of permanent files owned by the user')),
                ('total_space', models.BigIntegerField(help_text='Storage quota limit in bytes')),
                ('used_space', models.BigIntegerField(default=0, help_text='Currently used storage in bytes')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'User Quota',
                'verbose_name_plural': 'User Quotas',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('total_space__gte', 0)), name='quota_total_space_non_negative'),
                    models.CheckConstraint(condition=models.Q(('used_space__gte', 0)), name='quota_used_space_non_negative'),
                    models.CheckConstraint(condition=models.Q(('file_count__gte', 0)), name='quota_file_count_non_negative'),
                ],
            },
        ),
    ]
