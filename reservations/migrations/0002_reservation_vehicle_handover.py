from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("reservations", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="reservation",
            name="guest_address",
            field=models.CharField(blank=True, max_length=255),
        ),
        migrations.AddField(
            model_name="reservation",
            name="license_number",
            field=models.CharField(blank=True, max_length=40),
        ),
        migrations.AddField(
            model_name="reservation",
            name="emergency_contact",
            field=models.CharField(blank=True, max_length=120),
        ),
        migrations.AddField(
            model_name="reservation",
            name="emergency_phone",
            field=models.CharField(blank=True, max_length=40),
        ),
        migrations.AddField(
            model_name="reservation",
            name="pickup_location",
            field=models.CharField(blank=True, max_length=120),
        ),
        migrations.AddField(
            model_name="reservation",
            name="return_location",
            field=models.CharField(blank=True, max_length=120),
        ),
        migrations.AddField(
            model_name="reservation",
            name="actual_pickup_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name="reservation",
            name="actual_return_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name="reservation",
            name="fuel_level_pickup",
            field=models.CharField(blank=True, max_length=20),
        ),
        migrations.AddField(
            model_name="reservation",
            name="fuel_level_return",
            field=models.CharField(blank=True, max_length=20),
        ),
        migrations.AddField(
            model_name="reservation",
            name="damage_report",
            field=models.TextField(blank=True),
        ),
    ]
