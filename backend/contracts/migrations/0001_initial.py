# Generated migration for shared data contract

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('uploads', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='StoredFile',
            fields=[
                ('id', models.UUIDField(
                    default=uuid.uuid4,
                    editable=False,
                    primary_key=True,
                    serialize=False
                )),
                ('filename', models.CharField(
                    help_text='Filename as stored (after collision resolution)',
                    max_length=255
                )),
                ('path', models.CharField(
                    help_text='Storage-relative path of the file',
                    max_length=1024,
                    unique=True
                )),
                ('size', models.BigIntegerField(
                    help_text='File size in bytes'
                )),
                ('mime_type', models.CharField(
                    help_text='MIME type of the file',
                    max_length=100
                )),
                ('created_at', models.DateTimeField(
                    auto_now_add=True,
                    help_text='When this file was first stored'
                )),
                ('updated_at', models.DateTimeField(
                    auto_now=True,
                    help_text='When the stored bytes last changed'
                )),
                ('owner', models.ForeignKey(
                    blank=True,
                    help_text='User who last uploaded this file',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='stored_files',
                    to=settings.AUTH_USER_MODEL
                )),
                ('field', models.ForeignKey(
                    blank=True,
                    help_text='Upload field that stored this file',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='records',
                    to='uploads.uploadfield'
                )),
            ],
            options={
                'verbose_name': 'Stored File',
                'verbose_name_plural': 'Stored Files',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['filename'], name='storedfile_filename_idx'),
                    models.Index(fields=['mime_type'], name='storedfile_mime_idx'),
                    models.Index(fields=['created_at'], name='storedfile_created_idx'),
                ],
            },
        ),
    ]
