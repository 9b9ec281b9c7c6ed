"""
DineIn Event Store - Payload Codec
====================================
Payloads go into a JSON column but must come back with the types the
projections were fed live: Decimal amounts, aware datetimes and UUIDs.
Those three are written as one-key tagged objects and revived on read.
Tuples come back as lists.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder

DECIMAL_TAG = "__decimal__"
DATETIME_TAG = "__datetime__"
UUID_TAG = "__uuid__"


class PayloadEncoder(DjangoJSONEncoder):
    def default(self, o):
        if isinstance(o, Decimal):
            return {DECIMAL_TAG: str(o)}
        if isinstance(o, datetime):
            return {DATETIME_TAG: o.isoformat()}
        if isinstance(o, uuid.UUID):
            return {UUID_TAG: str(o)}
        return super().default(o)


def _revive(obj: dict):
    if len(obj) == 1:
        if DECIMAL_TAG in obj:
            return Decimal(obj[DECIMAL_TAG])
        if DATETIME_TAG in obj:
            return datetime.fromisoformat(obj[DATETIME_TAG])
        if UUID_TAG in obj:
            return uuid.UUID(obj[UUID_TAG])
    return obj


class PayloadDecoder(json.JSONDecoder):
    def __init__(self, *args, **kwargs):
        kwargs.setdefault("object_hook", _revive)
        super().__init__(*args, **kwargs)
