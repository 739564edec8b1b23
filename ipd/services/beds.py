"""
Bed registry.

Occupancy changes are single conditional UPDATE statements so two callers
racing for the same bed cannot both win: the row only flips from AVAILABLE
to OCCUPIED for the first writer and the second sees zero updated rows.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import IntegrityError, transaction
from django.utils import timezone

from ipd.choices import BedStatus, RoomCategory, coerce
from ipd.errors import BedNotFound, BedUnavailable, ConstraintRejected, ValidationFailed
from ipd.models import Bed

logger = logging.getLogger(__name__)

BED_GROUP = 'beds'


def format_bed(bed: Bed) -> dict:
    return {
        'id': bed.id,
        'bedNumber': bed.bed_number,
        'roomCategory': bed.room_category,
        'dailyRate': str(bed.daily_rate),
        'status': bed.status,
        'admissionId': str(bed.occupied_by) if bed.occupied_by else None,
        'updatedAt': bed.updated_at.isoformat() if bed.updated_at else None,
    }


def _broadcast(bed: Bed) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload = {'type': 'bed.changed', **format_bed(bed)}

    def send():
        # the bed change is already committed; a dead channel layer must not fail the caller
        try:
            async_to_sync(channel_layer.group_send)(BED_GROUP, payload)
        except Exception:
            logger.exception("bed %s broadcast failed", bed.bed_number)

    transaction.on_commit(send, robust=True)


def create_bed(*, bed_number: str, room_category, daily_rate: Decimal) -> Bed:
    category = coerce(RoomCategory, room_category, field='room_category')
    bed_number = (bed_number or '').strip()
    if not bed_number:
        raise ValidationFailed('bed_number')
    if daily_rate is None or Decimal(daily_rate) < 0:
        raise ValidationFailed('daily_rate', 'daily_rate must be zero or positive')
    try:
        with transaction.atomic():
            bed = Bed.objects.create(bed_number=bed_number, room_category=category, daily_rate=daily_rate)
    except IntegrityError as exc:
        if 'room_category' in str(exc):
            raise ConstraintRejected('room_category', room_category, RoomCategory.values) from exc
        raise ValidationFailed('bed_number', f'bed {bed_number} already exists') from exc
    _broadcast(bed)
    return bed


def list_beds(*, status: Optional[str] = None, room_category: Optional[str] = None):
    qs = Bed.objects.all()
    if status:
        qs = qs.filter(status=coerce(BedStatus, status, field='status'))
    if room_category:
        qs = qs.filter(room_category=coerce(RoomCategory, room_category, field='room_category'))
    return qs.order_by('bed_number')


def reserve(bed_id: int, admission_id: UUID) -> Bed:
    """Flip ``bed_id`` from AVAILABLE to OCCUPIED for ``admission_id``."""
    updated = Bed.objects.filter(pk=bed_id, status=BedStatus.AVAILABLE).update(
        status=BedStatus.OCCUPIED, occupied_by=admission_id, updated_at=timezone.now()
    )
    if not updated:
        if not Bed.objects.filter(pk=bed_id).exists():
            raise BedNotFound(bed_id)
        raise BedUnavailable(bed_id)
    bed = Bed.objects.get(pk=bed_id)
    logger.info("bed %s reserved for admission %s", bed.bed_number, admission_id)
    _broadcast(bed)
    return bed


def release(bed_id: int, admission_id: Optional[UUID] = None) -> Bed:
    """Return ``bed_id`` to AVAILABLE.

    Releasing a bed that is already available is a no-op.  With
    ``admission_id`` only a bed still held by that admission is released.
    """
    qs = Bed.objects.filter(pk=bed_id, status=BedStatus.OCCUPIED)
    if admission_id is not None:
        qs = qs.filter(occupied_by=admission_id)
    updated = qs.update(status=BedStatus.AVAILABLE, occupied_by=None, updated_at=timezone.now())
    bed = Bed.objects.filter(pk=bed_id).first()
    if bed is None:
        raise BedNotFound(bed_id)
    if updated:
        logger.info("bed %s released (admission %s)", bed.bed_number, admission_id)
        _broadcast(bed)
    return bed


def is_held_by(bed: Bed, admission_id: UUID) -> bool:
    return bed.status == BedStatus.OCCUPIED and bed.occupied_by == admission_id
