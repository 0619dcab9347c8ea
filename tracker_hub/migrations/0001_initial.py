from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(help_text='Resource key (fix, credentials, poi, config)', max_length=100, unique=True)),
                ('payload', models.JSONField(help_text='Complete document as JSON')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='When this document was last overwritten')),
            ],
            options={
                'verbose_name': 'Document',
                'verbose_name_plural': 'Documents',
                'ordering': ['key'],
            },
        ),
    ]
