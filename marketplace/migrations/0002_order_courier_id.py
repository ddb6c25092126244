from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('marketplace', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='order',
            name='courier_id',
            field=models.PositiveIntegerField(blank=True, help_text='Carrier courier quoted to the buyer', null=True),
        ),
    ]
