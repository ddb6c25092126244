from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ExchangeRate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('base_currency', models.CharField(help_text='Base currency code (e.g., USD)', max_length=3)),
                ('target_currency', models.CharField(help_text='Target currency code (e.g., INR, EUR)', max_length=3)),
                ('rate', models.DecimalField(decimal_places=8, help_text='Units of target per one unit of base', max_digits=20)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, help_text='Fetch time shared by the whole batch')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='When this rate was last updated')),
                ('source', models.CharField(default='manual', help_text='Source of this exchange rate data', max_length=100)),
                ('is_active', models.BooleanField(default=True, help_text='Whether this rate is currently active')),
            ],
            options={
                'verbose_name': 'Exchange Rate',
                'verbose_name_plural': 'Exchange Rates',
                'db_table': 'payment_exchange_rates',
                'ordering': ['-created_at', 'base_currency', 'target_currency'],
                'indexes': [
                    models.Index(fields=['base_currency', 'target_currency', '-created_at'], name='fx_pair_created_idx'),
                    models.Index(fields=['base_currency', '-created_at'], name='fx_base_created_idx'),
                    models.Index(fields=['created_at'], name='fx_created_idx'),
                ],
                'unique_together': {('base_currency', 'target_currency', 'created_at')},
            },
        ),
    ]
