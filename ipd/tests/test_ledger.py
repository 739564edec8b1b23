from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from ipd.choices import CHARGE_CATEGORIES
from ipd.errors import ConstraintRejected, InvalidEntryTransition, ValidationFailed
from ipd.models import LedgerEntry
from ipd.services.ledger import entries_for_admission, record_entry, set_entry_status

pytestmark = pytest.mark.django_db


def charge_total(admission):
    return sum(
        (e.amount for e in LedgerEntry.objects.filter(admission=admission, status="COMPLETED")
         if e.category in CHARGE_CATEGORIES),
        Decimal("0"),
    )


def test_entry_attaches_to_active_admission_and_refreshes_totals(patient, admission):
    record_entry(patient=patient, category="CONSULTATION", amount="1200")
    record_entry(patient=patient, category="medicine", amount=Decimal("300.50"))
    record_entry(patient=patient, category="IPD_ADVANCE", amount="1000", payment_mode="upi")
    admission.refresh_from_db()
    assert LedgerEntry.objects.filter(admission=admission).count() == 3
    assert admission.total_amount == Decimal("1500.50") == charge_total(admission)
    assert admission.amount_paid == Decimal("1000.00")
    assert admission.balance_amount == Decimal("500.50")


def test_entry_without_active_admission_stays_unattached(patient):
    e = record_entry(patient=patient, category="DIAGNOSTIC", amount="450")
    assert e.admission is None


@pytest.mark.parametrize("category,amount", [
    ("CONSULTATION", "0"),
    ("MEDICINE", "-100"),
    ("IPD_PAYMENT", "-10"),
    ("IPD_ADVANCE", "0"),
    ("REFUND", "100"),
])
def test_amount_sign_is_checked_per_category(patient, category, amount):
    with pytest.raises(ValidationFailed) as exc:
        record_entry(patient=patient, category=category, amount=amount)
    assert exc.value.field == "amount"
    assert not LedgerEntry.objects.exists()


def test_refund_is_negative_and_reduces_paid(patient, admission):
    record_entry(patient=patient, category="OTHER", amount="1000")
    record_entry(patient=patient, category="IPD_ADVANCE", amount="1500")
    record_entry(patient=patient, category="REFUND", amount="-500")
    admission.refresh_from_db()
    assert admission.amount_paid == Decimal("1000.00")
    assert admission.balance_amount == Decimal("0.00")


def test_unknown_category_is_rejected(patient):
    with pytest.raises(ConstraintRejected) as exc:
        record_entry(patient=patient, category="DISCOUNT", amount="10")
    assert exc.value.field == "category"


def test_idempotency_key_returns_existing_entry(patient, admission):
    first = record_entry(patient=patient, category="NURSING", amount="200", idempotency_key="ward-7:nursing:1")
    again = record_entry(patient=patient, category="NURSING", amount="200", idempotency_key="ward-7:nursing:1")
    assert again.pk == first.pk
    assert LedgerEntry.objects.count() == 1
    admission.refresh_from_db()
    assert admission.total_amount == Decimal("200.00")


def test_status_correction_refreshes_totals(patient, admission):
    e = record_entry(patient=patient, category="PROCEDURE", amount="5000", status="PENDING")
    admission.refresh_from_db()
    assert admission.total_amount == Decimal("0.00")

    set_entry_status(e, "COMPLETED")
    admission.refresh_from_db()
    assert admission.total_amount == Decimal("5000.00")

    set_entry_status(e, "CANCELLED")
    admission.refresh_from_db()
    assert admission.total_amount == Decimal("0.00")
    assert admission.balance_amount == Decimal("0.00")


@pytest.mark.parametrize("start,target", [("COMPLETED", "PENDING"), ("CANCELLED", "COMPLETED")])
def test_invalid_status_transitions(patient, start, target):
    e = record_entry(patient=patient, category="OTHER", amount="10", status=start)
    with pytest.raises(InvalidEntryTransition):
        set_entry_status(e, target)
    e.refresh_from_db()
    assert e.status == start


def test_entries_for_admission_window(patient, other_patient, admission):
    # recorded by other departments without an admission reference
    before = LedgerEntry.objects.create(patient=patient, category="OTHER", amount=Decimal("10"),
                                        created_at=admission.admitted_at - timedelta(days=1))
    loose = LedgerEntry.objects.create(patient=patient, category="DIAGNOSTIC", amount=Decimal("700"),
                                       created_at=admission.admitted_at + timedelta(hours=2))
    attached = record_entry(patient=patient, category="MEDICINE", amount="90")
    record_entry(patient=other_patient, category="MEDICINE", amount="55")
    record_entry(patient=patient, category="NURSING", amount="40", status="PENDING")

    ids = set(entries_for_admission(admission).values_list("pk", flat=True))
    assert ids == {loose.pk, attached.pk}
    assert before.pk not in ids


def test_discharge_artifacts_can_be_excluded(patient, admission):
    regular = record_entry(patient=patient, category="MEDICINE", amount="90")
    record_entry(patient=patient, category="CONSULTATION", amount="500", admission=admission,
                 idempotency_key=f"discharge:{admission.pk}:charge:doctor_fee")
    ids = set(entries_for_admission(admission, exclude_discharge_artifacts=True).values_list("pk", flat=True))
    assert ids == {regular.pk}
    assert entries_for_admission(admission).count() == 2


def test_entry_for_another_patients_admission_is_rejected(other_patient, admission):
    with pytest.raises(ValidationFailed) as exc:
        record_entry(patient=other_patient, category="OTHER", amount="1", admission=admission)
    assert exc.value.field == "admission"


def test_created_at_defaults_to_now(patient):
    e = record_entry(patient=patient, category="OTHER", amount="1")
    assert abs((timezone.now() - e.created_at).total_seconds()) < 60
