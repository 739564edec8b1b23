from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from ipd.errors import (
    AlreadyDischarged,
    BedUnavailable,
    ConstraintRejected,
    PatientAlreadyAdmitted,
    ValidationFailed,
)
from ipd.models import Admission, AuditEvent, Bed
from ipd.services.admissions import admit, discharge, ipd_stats, stay_days
from ipd.services.settlement import calculate_settlement

T = datetime(2024, 3, 1, 9, 30, tzinfo=dt_timezone.utc)


@pytest.mark.parametrize("elapsed,days", [
    (timedelta(0), 1),
    (timedelta(minutes=5), 1),
    (timedelta(hours=24), 1),
    (timedelta(hours=25), 2),
    (timedelta(days=2), 2),
    (timedelta(days=2, seconds=1), 3),
])
def test_stay_days_rounds_up_with_minimum_of_one(elapsed, days):
    assert stay_days(T, T + elapsed) == days


def test_stay_days_rejects_discharge_before_admission():
    with pytest.raises(ValidationFailed) as exc:
        stay_days(T, T - timedelta(seconds=1))
    assert exc.value.field == "discharged_at"


@pytest.mark.django_db
class TestAdmit:
    def test_admit_occupies_bed(self, patient, bed):
        a = admit(patient=patient, bed=bed)
        bed.refresh_from_db()
        assert a.status == "ACTIVE"
        assert a.room_category == "GENERAL"
        assert a.daily_rate == Decimal("1000.00")
        assert a.department == "General Medicine"
        assert bed.status == "OCCUPIED"
        assert bed.occupied_by == a.id
        assert AuditEvent.objects.filter(action="admit", object_id=str(a.id)).exists()

    def test_ipd_numbers_follow_a_daily_sequence(self, patient, other_patient, bed, icu_bed):
        today = timezone.localdate().strftime("%Y%m%d")
        first = admit(patient=patient, bed=bed)
        second = admit(patient=other_patient, bed=icu_bed)
        assert first.ipd_number == f"IPD-{today}-001"
        assert second.ipd_number == f"IPD-{today}-002"

    def test_second_admit_for_same_patient_fails(self, patient, bed, icu_bed):
        admit(patient=patient, bed=bed)
        with pytest.raises(PatientAlreadyAdmitted):
            admit(patient=patient, bed=icu_bed)
        icu_bed.refresh_from_db()
        assert icu_bed.status == "AVAILABLE"
        assert Admission.objects.filter(patient=patient).count() == 1

    def test_occupied_bed_cannot_be_admitted_to(self, patient, other_patient, bed):
        admit(patient=patient, bed=bed)
        with pytest.raises(BedUnavailable):
            admit(patient=other_patient, bed=bed.id)
        assert not Admission.objects.filter(patient=other_patient).exists()

    def test_room_category_is_case_insensitive(self, patient, icu_bed):
        a = admit(patient=patient, bed=icu_bed, room_category=" icu ")
        assert a.room_category == "ICU"

    def test_room_category_must_match_bed(self, patient, bed):
        with pytest.raises(ValidationFailed) as exc:
            admit(patient=patient, bed=bed, room_category="PRIVATE")
        assert exc.value.field == "room_category"
        bed.refresh_from_db()
        assert bed.status == "AVAILABLE"

    def test_unknown_room_category_is_rejected(self, patient, bed):
        with pytest.raises(ConstraintRejected) as exc:
            admit(patient=patient, bed=bed, room_category="suite")
        assert "GENERAL" in exc.value.accepted

    def test_daily_rate_override(self, patient, bed):
        a = admit(patient=patient, bed=bed, daily_rate="1250.50")
        assert a.daily_rate == Decimal("1250.50")

    def test_store_allows_one_active_admission_per_patient(self, patient, bed, icu_bed):
        a = admit(patient=patient, bed=bed)
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Admission.objects.create(
                    ipd_number="IPD-MANUAL-1", patient=patient, bed=icu_bed, room_category="ICU",
                )
        assert Admission.objects.get(patient=patient) == a


@pytest.mark.django_db
class TestDischargeTransition:
    def test_discharge_sets_terminal_state_once(self, admission):
        settled = calculate_settlement([], final_payment=0, stay_days=3)
        at = timezone.now()
        done = discharge(admission.id, settled, at)
        assert done.status == "DISCHARGED"
        assert done.discharged_at == at
        assert done.stay_days == 3
        with pytest.raises(AlreadyDischarged):
            discharge(admission.id, settled, timezone.now())
        done.refresh_from_db()
        assert done.discharged_at == at


@pytest.mark.django_db
def test_ipd_stats(patient, bed, icu_bed):
    admit(patient=patient, bed=bed)
    stats = ipd_stats()
    assert stats["admissionsToday"] == 1
    assert stats["lastIpdNumber"].endswith("-001")
    assert stats["activeAdmissions"] == 1
    assert stats["occupiedBeds"] == 1
    assert stats["availableBeds"] == Bed.objects.filter(status="AVAILABLE").count() == 1
