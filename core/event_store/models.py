"""
DineIn Event Store - Event Model
==================================
One row per committed fact: a claim, a ticket, a redemption, a
settlement, a ledger posting. Rows are written once and never touched
again.

reservation_id is copied out of the payload at write time so a whole
table visit can be read back without scanning JSON.
"""

import uuid

from django.db import models

from core.event_store.codec import PayloadDecoder, PayloadEncoder


class ActorType(models.TextChoices):
    GUEST = "GUEST", "Guest"
    STAFF = "STAFF", "Staff"
    SYSTEM = "SYSTEM", "System"
    GATEWAY = "GATEWAY", "Payment gateway"


class Event(models.Model):
    event_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event_type = models.CharField(max_length=255)
    event_version = models.PositiveSmallIntegerField()

    restaurant_id = models.UUIDField()
    reservation_id = models.CharField(max_length=64, blank=True, default="")

    source_engine = models.CharField(max_length=100)
    actor_type = models.CharField(max_length=20, choices=ActorType.choices)
    actor_id = models.CharField(max_length=255)

    correlation_id = models.UUIDField()
    causation_id = models.UUIDField(null=True, blank=True)

    # Decimal, datetime and UUID values round-trip with their types.
    payload = models.JSONField(encoder=PayloadEncoder, decoder=PayloadDecoder)

    created_at = models.DateTimeField()
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "dinein_event_store"
        ordering = ["received_at"]
        indexes = [
            models.Index(fields=["restaurant_id", "created_at"], name="idx_evt_restaurant_time"),
            models.Index(fields=["reservation_id"], name="idx_evt_reservation"),
            models.Index(fields=["event_type"], name="idx_evt_type"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionError(f"Event {self.event_id} is already stored and cannot change.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError(f"Event {self.event_id} cannot be deleted.")

    def __str__(self):
        return f"{self.event_type} {self.event_id}"
