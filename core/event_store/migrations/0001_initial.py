import uuid

from django.db import migrations, models

import core.event_store.codec


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("event_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("event_type", models.CharField(max_length=255)),
                ("event_version", models.PositiveSmallIntegerField()),
                ("restaurant_id", models.UUIDField()),
                ("reservation_id", models.CharField(blank=True, default="", max_length=64)),
                ("source_engine", models.CharField(max_length=100)),
                ("actor_type", models.CharField(choices=[("GUEST", "Guest"), ("STAFF", "Staff"), ("SYSTEM", "System"), ("GATEWAY", "Payment gateway")], max_length=20)),
                ("actor_id", models.CharField(max_length=255)),
                ("correlation_id", models.UUIDField()),
                ("causation_id", models.UUIDField(blank=True, null=True)),
                ("payload", models.JSONField(decoder=core.event_store.codec.PayloadDecoder, encoder=core.event_store.codec.PayloadEncoder)),
                ("created_at", models.DateTimeField()),
                ("received_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "dinein_event_store",
                "ordering": ["received_at"],
                "indexes": [
                    models.Index(fields=["restaurant_id", "created_at"], name="idx_evt_restaurant_time"),
                    models.Index(fields=["reservation_id"], name="idx_evt_reservation"),
                    models.Index(fields=["event_type"], name="idx_evt_type"),
                ],
            },
        ),
    ]
