from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.management import call_command
from django.db import DatabaseError, OperationalError
from django.utils import timezone

from ipd.choices import CHARGE_CATEGORIES
from ipd.errors import PartialDischargeFailure, ValidationFailed
from ipd.models import AuditEvent, Bed, DischargeBill, DischargeSummary, LedgerEntry
from ipd.services import beds
from ipd.services import discharge as orchestrator
from ipd.services.admissions import admit
from ipd.services.ledger import record_entry
from ipd.services.settlement import ManualCharges

pytestmark = pytest.mark.django_db


def charged(admission):
    return sum(
        (e.amount for e in LedgerEntry.objects.filter(admission=admission, status="COMPLETED")
         if e.category in CHARGE_CATEGORIES),
        Decimal("0"),
    )


def bill_store_down(*args, **kwargs):
    raise DatabaseError("down")


def test_full_settlement_frees_the_bed(patient, bed, admission, discharge_request):
    record_entry(patient=patient, category="CONSULTATION", amount="5000")

    outcome = orchestrator.discharge(admission.id, discharge_request(final_payment=Decimal("5000")))

    bill = outcome.bill
    assert bill.existing_charges == Decimal("5000.00")
    assert bill.net_amount == Decimal("5000.00")
    assert bill.balance == Decimal("0.00")
    assert bill.bill_number == f"DB-{admission.ipd_number}"
    assert outcome.admission.status == "DISCHARGED"
    assert outcome.admission.balance_amount == Decimal("0.00")
    assert outcome.admission.stay_days == 3
    bed.refresh_from_db()
    assert bed.status == "AVAILABLE"
    assert bed.occupied_by is None

    payment = LedgerEntry.objects.get(idempotency_key=f"discharge:{admission.id}:final-payment")
    assert payment.category == "IPD_PAYMENT"
    assert payment.amount == Decimal("5000.00")
    assert bill.bill_number in payment.description


def test_balance_due_does_not_block_discharge(patient, bed, admission, discharge_request):
    record_entry(patient=patient, category="PROCEDURE", amount="3000")

    outcome = orchestrator.discharge(
        admission.id,
        discharge_request(discount=Decimal("500"), discount_reason="staff", insurance_covered=Decimal("1000")),
    )

    assert outcome.bill.net_amount == Decimal("1500.00")
    assert outcome.bill.balance == Decimal("1500.00")
    assert outcome.bill.discount_reason == "staff"
    assert outcome.admission.status == "DISCHARGED"
    assert outcome.admission.balance_amount == Decimal("1500.00")
    assert not LedgerEntry.objects.filter(category="IPD_PAYMENT").exists()
    assert not LedgerEntry.objects.filter(amount__lt=0).exists()  # discount is not a ledger entry


def test_overpayment_is_stored_as_negative_balance(patient, admission, discharge_request):
    record_entry(patient=patient, category="MEDICINE", amount="1000")
    record_entry(patient=patient, category="IPD_ADVANCE", amount="1500")

    outcome = orchestrator.discharge(admission.id, discharge_request())

    assert outcome.bill.prior_payments == Decimal("1500.00")
    assert outcome.bill.balance == Decimal("-500.00")
    outcome.admission.refresh_from_db()
    assert outcome.admission.balance_amount == Decimal("-500.00")


def test_manual_charges_become_keyed_ledger_entries(patient, admission, discharge_request):
    record_entry(patient=patient, category="CONSULTATION", amount="2000")
    charges = ManualCharges(doctor_fee=Decimal("500"), medicine=Decimal("250"), bed_rate=Decimal("1000"))

    outcome = orchestrator.discharge(admission.id, discharge_request(charges=charges))

    keys = set(
        LedgerEntry.objects.filter(idempotency_key__startswith=f"discharge:{admission.id}:")
        .values_list("idempotency_key", flat=True)
    )
    assert keys == {
        f"discharge:{admission.id}:charge:doctor_fee",
        f"discharge:{admission.id}:charge:medicine",
        f"discharge:{admission.id}:charge:bed_charge",
    }
    assert LedgerEntry.objects.get(idempotency_key__endswith=":bed_charge").amount == Decimal("3000.00")
    assert outcome.bill.existing_charges == Decimal("2000.00")
    assert outcome.bill.additional_charges == Decimal("3750.00")
    assert outcome.bill.total_charges == Decimal("5750.00")
    # cached total matches the ledger
    assert outcome.admission.total_amount == charged(admission) == Decimal("5750.00")


def test_second_discharge_is_a_no_op(patient, admission, discharge_request):
    record_entry(patient=patient, category="CONSULTATION", amount="800")
    request = discharge_request(final_payment=Decimal("800"))

    first = orchestrator.discharge(admission.id, request)
    second = orchestrator.discharge(admission.id, request)

    assert second.already_discharged is True
    assert second.bill.pk == first.bill.pk
    assert DischargeSummary.objects.filter(admission=admission).count() == 1
    assert DischargeBill.objects.filter(admission=admission).count() == 1
    assert LedgerEntry.objects.filter(category="IPD_PAYMENT").count() == 1


@pytest.mark.parametrize("override,field", [
    ({"final_diagnosis": "   "}, "final_diagnosis"),
    ({"primary_consultant": ""}, "primary_consultant"),
    ({"attendant_name": ""}, "attendant_name"),
    ({"patient_consent": False}, "patient_consent"),
    ({"documents_handed_over": False}, "documents_handed_over"),
    ({"discharge_type": "TRANSFER"}, "transfer_hospital"),
    ({"discount": Decimal("-1")}, "discount"),
])
def test_validation_happens_before_any_write(admission, discharge_request, override, field):
    with pytest.raises(ValidationFailed) as exc:
        orchestrator.discharge(admission.id, discharge_request(**override))
    assert exc.value.field == field
    assert not DischargeSummary.objects.exists()
    admission.refresh_from_db()
    assert admission.status == "ACTIVE"


def test_discharge_before_admission_time_is_rejected(admission, discharge_request):
    with pytest.raises(ValidationFailed) as exc:
        orchestrator.discharge(
            admission.id, discharge_request(discharged_at=admission.admitted_at - timedelta(minutes=1)),
        )
    assert exc.value.field == "discharged_at"
    assert not DischargeSummary.objects.exists()


def test_transfer_records_destination(admission, discharge_request):
    outcome = orchestrator.discharge(
        admission.id, discharge_request(discharge_type="transfer", transfer_hospital="City Hospital"),
    )
    assert outcome.summary.discharge_type == "TRANSFER"
    assert outcome.summary.transfer_hospital == "City Hospital"


def test_bill_write_failure_resumes_without_duplicates(monkeypatch, patient, bed, admission, discharge_request):
    record_entry(patient=patient, category="CONSULTATION", amount="3000")
    request = discharge_request(charges=ManualCharges(nursing=Decimal("400")), discount=Decimal("100"))

    def broken_bill(*args, **kwargs):
        raise DatabaseError("discharge bill table unavailable")

    monkeypatch.setattr(orchestrator, "_write_bill", broken_bill)
    with pytest.raises(PartialDischargeFailure) as exc:
        orchestrator.discharge(admission.id, request)
    failure = exc.value
    summary = DischargeSummary.objects.get(admission=admission)
    assert failure.step == 4
    assert failure.summary_id == summary.pk
    assert failure.bill_id is None
    assert failure.payload()["resumable"] is True
    assert str(failure) == "discharge incomplete - resume required"
    admission.refresh_from_db()
    bed.refresh_from_db()
    assert admission.status == "ACTIVE"
    assert bed.status == "OCCUPIED"
    assert list(orchestrator.incomplete_discharges()) == [admission]
    assert AuditEvent.objects.filter(action="discharge_failed").exists()

    monkeypatch.undo()
    # the retry carries a different discount; the stored inputs win
    outcome = orchestrator.discharge(admission.id, discharge_request(discount=Decimal("999")))

    assert outcome.resumed is True
    assert DischargeSummary.objects.filter(admission=admission).count() == 1
    assert DischargeBill.objects.filter(admission=admission).count() == 1
    assert LedgerEntry.objects.filter(idempotency_key__endswith=":charge:nursing").count() == 1
    assert outcome.bill.discount == Decimal("100.00")
    assert outcome.bill.total_charges == Decimal("3400.00")
    assert outcome.bill.balance == Decimal("3300.00")
    bed.refresh_from_db()
    assert outcome.admission.status == "DISCHARGED"
    assert bed.status == "AVAILABLE"
    assert list(orchestrator.incomplete_discharges()) == []


def test_bed_release_failure_is_resumed(monkeypatch, patient, bed, admission, discharge_request):
    def broken_release(*args, **kwargs):
        raise DatabaseError("lock wait timeout")

    monkeypatch.setattr(beds, "release", broken_release)
    with pytest.raises(PartialDischargeFailure) as exc:
        orchestrator.discharge(admission.id, discharge_request())
    assert exc.value.step == 7
    assert exc.value.bill_id is not None
    admission.refresh_from_db()
    assert admission.status == "DISCHARGED"
    assert list(orchestrator.incomplete_discharges()) == [admission]

    monkeypatch.undo()
    outcome = orchestrator.discharge(admission.id, discharge_request())
    assert outcome.already_discharged is False
    assert outcome.resumed is True
    bed.refresh_from_db()
    assert bed.status == "AVAILABLE"

    assert orchestrator.discharge(admission.id, discharge_request()).already_discharged is True


def test_transient_errors_are_retried(monkeypatch, admission, discharge_request, settings):
    settings.IPD_DISCHARGE_STEP_RETRIES = 2
    real_write_bill = orchestrator._write_bill
    calls = []

    def flaky(*args, **kwargs):
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("database is locked")
        return real_write_bill(*args, **kwargs)

    monkeypatch.setattr(orchestrator, "_write_bill", flaky)
    outcome = orchestrator.discharge(admission.id, discharge_request())
    assert len(calls) == 3
    assert outcome.admission.status == "DISCHARGED"


def test_retries_are_bounded(monkeypatch, admission, discharge_request, settings):
    settings.IPD_DISCHARGE_STEP_RETRIES = 1
    calls = []

    def always_locked(*args, **kwargs):
        calls.append(1)
        raise OperationalError("database is locked")

    monkeypatch.setattr(orchestrator, "_write_bill", always_locked)
    with pytest.raises(PartialDischargeFailure) as exc:
        orchestrator.discharge(admission.id, discharge_request())
    assert exc.value.step == 4
    assert len(calls) == 2


def test_resume_discharge_uses_stored_inputs(monkeypatch, patient, admission, discharge_request):
    record_entry(patient=patient, category="OTHER", amount="600")
    monkeypatch.setattr(orchestrator, "_write_bill", bill_store_down)
    with pytest.raises(PartialDischargeFailure):
        orchestrator.discharge(admission.id, discharge_request(final_payment=Decimal("600")))
    monkeypatch.undo()

    outcome = orchestrator.resume_discharge(admission.id)
    assert outcome.resumed is True
    assert outcome.bill.final_payment == Decimal("600.00")
    assert outcome.bill.balance == Decimal("0.00")
    assert AuditEvent.objects.filter(action="discharge_resumed").exists()


def test_resume_without_started_discharge(admission):
    with pytest.raises(ValidationFailed):
        orchestrator.resume_discharge(admission.id)


def test_freed_bed_is_not_released_by_late_retry(patient, other_patient, bed, admission, discharge_request):
    orchestrator.discharge(admission.id, discharge_request())
    newcomer = admit(patient=other_patient, bed=bed)

    beds.release(bed.id, admission_id=admission.id)

    bed.refresh_from_db()
    assert bed.status == "OCCUPIED"
    assert bed.occupied_by == newcomer.id


def test_resume_discharges_command(monkeypatch, admission, discharge_request, capsys):
    monkeypatch.setattr(orchestrator, "_write_bill", bill_store_down)
    with pytest.raises(PartialDischargeFailure):
        orchestrator.discharge(admission.id, discharge_request())
    monkeypatch.undo()

    call_command("resume_discharges")

    out = capsys.readouterr().out
    assert f"discharged: {admission.ipd_number}" in out
    assert Bed.objects.get(pk=admission.bed_id).status == "AVAILABLE"


def test_discharged_at_defaults_to_now(admission, discharge_request):
    before = timezone.now()
    outcome = orchestrator.discharge(admission.id, discharge_request())
    assert outcome.summary.discharged_at >= before
    assert outcome.admission.discharged_at == outcome.summary.discharged_at


def test_resume_after_completion_returns_stored_records(admission, discharge_request):
    first = orchestrator.discharge(admission.id, discharge_request())
    again = orchestrator.resume_discharge(admission.id)
    assert again.already_discharged is True
    assert again.resumed is False
    assert again.summary.pk == first.summary.pk
    assert again.bill.pk == first.bill.pk
