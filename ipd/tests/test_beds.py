import uuid
from decimal import Decimal

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import IntegrityError, transaction

from ipd.errors import BedNotFound, BedUnavailable, ConstraintRejected
from ipd.models import Bed
from ipd.services import beds

pytestmark = pytest.mark.django_db


def test_reserve_marks_bed_occupied_by_admission(bed):
    admission_id = uuid.uuid4()
    reserved = beds.reserve(bed.id, admission_id)
    assert reserved.status == "OCCUPIED"
    assert reserved.occupied_by == admission_id


def test_reserve_occupied_bed_fails_and_keeps_first_holder(bed):
    first, second = uuid.uuid4(), uuid.uuid4()
    beds.reserve(bed.id, first)
    with pytest.raises(BedUnavailable):
        beds.reserve(bed.id, second)
    bed.refresh_from_db()
    assert bed.occupied_by == first


def test_reserve_is_a_single_conditional_update(bed):
    # A caller holding a stale AVAILABLE copy still loses once the row changed.
    stale = Bed.objects.get(pk=bed.pk)
    beds.reserve(bed.id, uuid.uuid4())
    assert stale.status == "AVAILABLE"
    with pytest.raises(BedUnavailable):
        beds.reserve(stale.id, uuid.uuid4())
    assert Bed.objects.filter(pk=bed.pk, status="OCCUPIED").count() == 1


def test_reserve_unknown_bed():
    with pytest.raises(BedNotFound):
        beds.reserve(999999, uuid.uuid4())


def test_release_is_idempotent(bed):
    holder = uuid.uuid4()
    beds.reserve(bed.id, holder)
    assert beds.release(bed.id, admission_id=holder).status == "AVAILABLE"
    again = beds.release(bed.id, admission_id=holder)
    assert again.status == "AVAILABLE"
    assert again.occupied_by is None


def test_release_only_frees_bed_held_by_that_admission(bed):
    old, current = uuid.uuid4(), uuid.uuid4()
    beds.reserve(bed.id, current)
    beds.release(bed.id, admission_id=old)
    bed.refresh_from_db()
    assert bed.status == "OCCUPIED"
    assert bed.occupied_by == current


def test_release_unknown_bed():
    with pytest.raises(BedNotFound):
        beds.release(999999)


def test_create_bed_normalises_room_category():
    bed = beds.create_bed(bed_number=" ICU-07 ", room_category=" icu", daily_rate=Decimal("8000"))
    assert bed.bed_number == "ICU-07"
    assert bed.room_category == "ICU"
    assert bed.status == "AVAILABLE"


def test_create_bed_rejects_unknown_category():
    with pytest.raises(ConstraintRejected) as exc:
        beds.create_bed(bed_number="D-01", room_category="Deluxe", daily_rate=Decimal("5000"))
    assert exc.value.value == "Deluxe"
    assert exc.value.accepted == ["GENERAL", "PRIVATE", "ICU", "EMERGENCY"]
    assert not Bed.objects.filter(bed_number="D-01").exists()


def test_store_rejects_non_canonical_category():
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            Bed.objects.create(bed_number="X-01", room_category="general", daily_rate=Decimal("1"))


def test_list_beds_filters(bed, icu_bed):
    beds.reserve(icu_bed.id, uuid.uuid4())
    assert [b.bed_number for b in beds.list_beds(status="available")] == ["G-01"]
    assert [b.bed_number for b in beds.list_beds(room_category="ICU")] == ["ICU-01"]
    with pytest.raises(ConstraintRejected):
        list(beds.list_beds(status="broken"))


def test_occupancy_changes_are_broadcast_after_commit(bed, django_capture_on_commit_callbacks):
    layer = get_channel_layer()
    channel = async_to_sync(layer.new_channel)()
    async_to_sync(layer.group_add)(beds.BED_GROUP, channel)
    holder = uuid.uuid4()
    try:
        with django_capture_on_commit_callbacks(execute=True):
            beds.reserve(bed.id, holder)
        event = async_to_sync(layer.receive)(channel)
        assert event["type"] == "bed.changed"
        assert event["bedNumber"] == "G-01"
        assert event["status"] == "OCCUPIED"
        assert event["admissionId"] == str(holder)

        with django_capture_on_commit_callbacks(execute=True):
            beds.release(bed.id, admission_id=holder)
        event = async_to_sync(layer.receive)(channel)
        assert event["status"] == "AVAILABLE"
        assert event["admissionId"] is None
    finally:
        async_to_sync(layer.group_discard)(beds.BED_GROUP, channel)


def test_noop_release_is_not_broadcast(bed, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks() as callbacks:
        beds.release(bed.id)
    assert callbacks == []
