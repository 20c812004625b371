from django.db import migrations, models
import uploads.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='UploadField',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.SlugField(help_text='Machine name of the field', max_length=100, unique=True)),
                ('label', models.CharField(blank=True, help_text='Human readable label', max_length=255)),
                ('field_type', models.CharField(
                    choices=[('file', 'File'), ('image', 'Image')],
                    default='file',
                    help_text='Capability tag of the field',
                    max_length=10
                )),
                ('upload_directory', models.CharField(
                    blank=True,
                    help_text='Storage-relative directory, strftime tokens allowed (e.g. uploads/%Y/%m)',
                    max_length=255
                )),
                ('policy', models.CharField(
                    choices=[
                        ('rename', 'Rename the new file'),
                        ('replace', 'Replace the existing file'),
                        ('error', 'Reject the upload'),
                    ],
                    default=uploads.models.default_policy,
                    help_text='What happens when an uploaded filename already exists',
                    max_length=10
                )),
                ('allowed_extensions', models.CharField(
                    blank=True,
                    help_text='Space separated list of allowed extensions, empty for any',
                    max_length=255
                )),
                ('max_filesize', models.PositiveBigIntegerField(
                    default=0,
                    help_text='Maximum upload size in bytes, 0 for the site default'
                )),
                ('multiple', models.BooleanField(
                    default=False,
                    help_text='Accept more than one file per submission'
                )),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Upload Field',
                'verbose_name_plural': 'Upload Fields',
                'ordering': ['name'],
            },
        ),
    ]
