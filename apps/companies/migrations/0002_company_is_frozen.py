from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('companies', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='company',
            name='is_frozen',
            field=models.BooleanField(default=False, help_text='Frozen companies are read-only: every mutating permission check denies'),
        ),
    ]
