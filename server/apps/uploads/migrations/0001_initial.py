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
            name='Upload',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sha256', models.CharField(help_text='SHA256 of the stored bytes', max_length=64, unique=True)),
                ('filesize', models.BigIntegerField(help_text='Stored size in bytes')),
                ('extension', models.CharField(blank=True, help_text='Extension of the stored format, without dot', max_length=10)),
                ('original_filename', models.CharField(help_text='Client filename, corrected to the stored format', max_length=1000)),
                ('width', models.PositiveIntegerField(blank=True, null=True)),
                ('height', models.PositiveIntegerField(blank=True, null=True)),
                ('storage_key', models.CharField(help_text='Key of the object in the upload store', max_length=500)),
                ('url', models.CharField(help_text='Canonical (unsigned) URL returned by the store', max_length=500)),
                ('etag', models.CharField(blank=True, default='', max_length=255)),
                ('secure', models.BooleanField(default=False, help_text='Access requires authentication or a signed URL')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_uploads', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Upload',
                'verbose_name_plural': 'Uploads',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['sha256', 'filesize'], name='uploads_fingerprint_idx')],
            },
        ),
        migrations.CreateModel(
            name='UserUpload',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('upload', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='user_uploads', to='uploads.upload')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='user_uploads', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'User Upload',
                'verbose_name_plural': 'User Uploads',
                'ordering': ['-created_at'],
            },
        ),
    ]
