from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('portal', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='principalmetadata',
            name='session_epoch',
            field=models.PositiveIntegerField(default=0),
        ),
    ]
