"""
Discharge orchestration.

A discharge is seven steps, each its own committed write:

1. validate the request (nothing is written on failure)
2. write the discharge summary
3. write ledger entries for the charges keyed in at the desk
4. write the discharge bill
5. write the final payment entry, if any
6. move the admission to DISCHARGED
7. release the bed

There is no rollback across steps.  Every step is keyed on the admission
(the summary and bill are one-to-one with it, ledger entries carry an
idempotency key derived from its id), so running the sequence again after a
failure finds what is already there and carries on from the first missing
step.  The summary stores the discharge instant and the billing inputs of the
first attempt; a resumed run settles with those, not with whatever the
second caller sent.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from django.conf import settings
from django.db import DatabaseError, OperationalError, transaction
from django.db.models import F, Q
from django.utils import timezone

from ipd.choices import (
    AdmissionStatus,
    DischargeCondition,
    DischargeType,
    LedgerCategory,
    PaymentMode,
    coerce,
)
from ipd.errors import AlreadyDischarged, PartialDischargeFailure, ValidationFailed
from ipd.models import Admission, Bed, DischargeBill, DischargeSummary
from ipd.services import admissions, beds
from ipd.services.audit import log_action
from ipd.services.ledger import discharge_key_prefix, entries_for_admission, record_entry
from ipd.services.settlement import ZERO, ManualCharges, Settlement, calculate_settlement, money

logger = logging.getLogger(__name__)

NARRATIVE_FIELDS = (
    'chief_complaints',
    'hopi',
    'past_history',
    'investigations',
    'course_of_stay',
    'treatment_summary',
    'discharge_medication',
    'follow_up_on',
    'discharge_notes',
)

CHARGE_LABELS = {
    'doctor_fee': 'Doctor fee',
    'nursing': 'Nursing charges',
    'medicine': 'Medicine charges',
    'diagnostic': 'Diagnostic charges',
    'operation': 'Operation charges',
    'other': 'Other charges',
    'bed_charge': 'Bed charges',
}


@dataclass(frozen=True)
class DischargeRequest:
    final_diagnosis: str = ''
    primary_consultant: str = ''
    attendant_name: str = ''
    patient_consent: bool = False
    documents_handed_over: bool = False
    discharge_type: str = DischargeType.ROUTINE
    transfer_hospital: str = ''
    discharge_condition: str = DischargeCondition.STABLE
    attendant_relationship: str = ''
    attendant_contact: str = ''
    narrative: dict = field(default_factory=dict)
    charges: ManualCharges = field(default_factory=ManualCharges)
    discount: Decimal = ZERO
    discount_reason: str = ''
    insurance_covered: Decimal = ZERO
    final_payment: Decimal = ZERO
    payment_mode: str = PaymentMode.CASH
    discharged_at: Optional[datetime] = None

    @classmethod
    def from_data(cls, data: dict) -> 'DischargeRequest':
        """Build a request from a flat mapping such as serializer output."""
        return cls(
            final_diagnosis=data.get('final_diagnosis') or '',
            primary_consultant=data.get('primary_consultant') or '',
            attendant_name=data.get('attendant_name') or '',
            patient_consent=bool(data.get('patient_consent')),
            documents_handed_over=bool(data.get('documents_handed_over')),
            discharge_type=data.get('discharge_type') or DischargeType.ROUTINE,
            transfer_hospital=data.get('transfer_hospital') or '',
            discharge_condition=data.get('discharge_condition') or DischargeCondition.STABLE,
            attendant_relationship=data.get('attendant_relationship') or '',
            attendant_contact=data.get('attendant_contact') or '',
            narrative={name: data.get(name) or '' for name in NARRATIVE_FIELDS},
            charges=ManualCharges.from_data(data.get('charges') or data),
            discount=money(data.get('discount'), 'discount'),
            discount_reason=data.get('discount_reason') or '',
            insurance_covered=money(data.get('insurance_covered'), 'insurance_covered'),
            final_payment=money(data.get('final_payment'), 'final_payment'),
            payment_mode=data.get('payment_mode') or PaymentMode.CASH,
            discharged_at=data.get('discharged_at'),
        )

    def billing_inputs(self) -> dict:
        return {
            'charges': self.charges.as_json(),
            'discount': str(self.discount),
            'discount_reason': self.discount_reason,
            'insurance_covered': str(self.insurance_covered),
            'final_payment': str(self.final_payment),
            'payment_mode': self.payment_mode,
        }


@dataclass
class DischargeOutcome:
    admission: Admission
    summary: Optional[DischargeSummary]
    bill: Optional[DischargeBill]
    resumed: bool = False
    already_discharged: bool = False


def validate_request(request: DischargeRequest) -> DischargeRequest:
    """Normalise ``request`` or raise :class:`ValidationFailed` for the first bad field."""
    text = {
        'final_diagnosis': (request.final_diagnosis or '').strip(),
        'primary_consultant': (request.primary_consultant or '').strip(),
        'attendant_name': (request.attendant_name or '').strip(),
    }
    for name, value in text.items():
        if not value:
            raise ValidationFailed(name)
    if not request.patient_consent:
        raise ValidationFailed('patient_consent', 'patient consent is required for discharge')
    if not request.documents_handed_over:
        raise ValidationFailed('documents_handed_over', 'documents must be handed over before discharge')

    discharge_type = coerce(DischargeType, request.discharge_type, field='discharge_type')
    transfer_hospital = (request.transfer_hospital or '').strip()
    if discharge_type == DischargeType.TRANSFER and not transfer_hospital:
        raise ValidationFailed('transfer_hospital')
    condition = coerce(DischargeCondition, request.discharge_condition, field='discharge_condition')

    final_payment = money(request.final_payment, 'final_payment')
    if final_payment > 0 and not request.payment_mode:
        raise ValidationFailed('payment_mode')
    payment_mode = coerce(PaymentMode, request.payment_mode or PaymentMode.CASH, field='payment_mode')

    return replace(
        request,
        discharge_type=discharge_type,
        transfer_hospital=transfer_hospital,
        discharge_condition=condition,
        narrative={name: (request.narrative.get(name) or '').strip() for name in NARRATIVE_FIELDS},
        discount=money(request.discount, 'discount'),
        insurance_covered=money(request.insurance_covered, 'insurance_covered'),
        final_payment=final_payment,
        payment_mode=payment_mode,
        discharged_at=request.discharged_at or timezone.now(),
        **text,
    )


def _run_step(step: int, admission_id, fn: Callable, *, summary_id=None, bill_id=None):
    """Run one step in its own transaction.

    Transient ``OperationalError``s are retried; any other store error, or
    the last transient one, becomes a resumable :class:`PartialDischargeFailure`.
    """
    retries = int(getattr(settings, 'IPD_DISCHARGE_STEP_RETRIES', 3))
    attempt = 0
    while True:
        attempt += 1
        try:
            with transaction.atomic():
                return fn()
        except OperationalError as exc:
            if attempt <= retries:
                logger.warning("discharge %s step %s attempt %s failed: %s; retrying",
                               admission_id, step, attempt, exc)
                continue
            cause = exc
        except DatabaseError as exc:
            cause = exc
        logger.error("discharge %s failed at step %s: %s", admission_id, step, cause)
        log_action(user=None, action='discharge_failed', object_type='Admission', object_id=admission_id,
                   detail={'step': step, 'reason': str(cause)})
        raise PartialDischargeFailure(step, admission_id, summary_id=summary_id, bill_id=bill_id, cause=cause)


def _write_summary(admission: Admission, request: DischargeRequest, user) -> DischargeSummary:
    summary, created = DischargeSummary.objects.get_or_create(
        admission=admission,
        defaults=dict(
            patient_id=admission.patient_id,
            discharge_type=request.discharge_type,
            transfer_hospital=request.transfer_hospital,
            discharge_condition=request.discharge_condition,
            final_diagnosis=request.final_diagnosis,
            primary_consultant=request.primary_consultant,
            attendant_name=request.attendant_name,
            attendant_relationship=request.attendant_relationship,
            attendant_contact=request.attendant_contact,
            documents_handed_over=request.documents_handed_over,
            patient_consent=request.patient_consent,
            discharged_at=request.discharged_at,
            billing_inputs=request.billing_inputs(),
            created_by=user if getattr(user, 'pk', None) else None,
            **request.narrative,
        ),
    )
    if created:
        logger.info("discharge summary %s written for admission %s", summary.pk, admission.pk)
    return summary


def _write_charges(admission: Admission, charges: ManualCharges, days: int, user) -> None:
    prefix = discharge_key_prefix(admission.pk)
    for name, category, amount in charges.itemised(days):
        record_entry(
            patient=admission.patient,
            admission=admission,
            category=category,
            amount=amount,
            description=f"{CHARGE_LABELS.get(name, name)} at discharge",
            idempotency_key=f"{prefix}charge:{name}",
            user=user,
        )


def _write_bill(admission: Admission, summary: DischargeSummary, settlement: Settlement) -> DischargeBill:
    inputs = summary.billing_inputs
    bill, created = DischargeBill.objects.get_or_create(
        summary=summary,
        defaults=dict(
            admission=admission,
            bill_number=f"DB-{admission.ipd_number}",
            existing_charges=settlement.existing_charges,
            line_items=settlement.line_items,
            additional_charges=settlement.additional_charges,
            total_charges=settlement.total_charges,
            discount=settlement.discount,
            discount_reason=inputs.get('discount_reason', ''),
            insurance_covered=settlement.insurance_covered,
            net_amount=settlement.net_amount,
            prior_payments=settlement.prior_payments,
            final_payment=settlement.final_payment,
            payment_mode=inputs.get('payment_mode') or PaymentMode.CASH,
            total_paid=settlement.total_paid,
            balance=settlement.balance,
            stay_days=settlement.stay_days,
        ),
    )
    if created:
        logger.info("discharge bill %s written: net=%s balance=%s", bill.bill_number, bill.net_amount, bill.balance)
    return bill


def _write_final_payment(admission: Admission, bill: DischargeBill, user) -> None:
    if bill.final_payment <= 0:
        return
    record_entry(
        patient=admission.patient,
        admission=admission,
        category=LedgerCategory.IPD_PAYMENT,
        amount=bill.final_payment,
        payment_mode=bill.payment_mode,
        description=f"Final payment against {bill.bill_number}",
        idempotency_key=f"{discharge_key_prefix(admission.pk)}final-payment",
        user=user,
    )


def _mark_discharged(admission: Admission, bill: DischargeBill, discharged_at: datetime) -> None:
    try:
        admissions.discharge(admission.pk, bill_settlement(bill), discharged_at)
    except AlreadyDischarged:
        pass


def bill_settlement(bill: DischargeBill) -> Settlement:
    """The settlement frozen in ``bill``."""
    return Settlement(
        existing_charges=bill.existing_charges,
        prior_payments=bill.prior_payments,
        additional_charges=bill.additional_charges,
        total_charges=bill.total_charges,
        discount=bill.discount,
        insurance_covered=bill.insurance_covered,
        net_amount=bill.net_amount,
        final_payment=bill.final_payment,
        total_paid=bill.total_paid,
        balance=bill.balance,
        stay_days=bill.stay_days,
        line_items=list(bill.line_items or []),
    )


def _stored_charges(summary: DischargeSummary) -> tuple[ManualCharges, dict]:
    inputs = summary.billing_inputs or {}
    return ManualCharges.from_data(inputs.get('charges')), inputs


def _carry_forward(admission: Admission, request: Optional[DischargeRequest], user) -> tuple:
    admission_id = admission.pk
    summary = DischargeSummary.objects.filter(admission=admission).first()
    if summary is None:
        if request is None:
            raise ValidationFailed('admission', 'no discharge in progress for this admission')
        summary = _run_step(2, admission_id, lambda: _write_summary(admission, request, user))

    charges, inputs = _stored_charges(summary)
    discharged_at = summary.discharged_at
    days = admissions.stay_days(admission.admitted_at, discharged_at)

    _run_step(3, admission_id, lambda: _write_charges(admission, charges, days, user), summary_id=summary.pk)

    bill = DischargeBill.objects.filter(summary=summary).first()
    if bill is None:
        settlement = calculate_settlement(
            entries_for_admission(admission, exclude_discharge_artifacts=True, until=discharged_at),
            charges=charges,
            discount=inputs.get('discount'),
            insurance_covered=inputs.get('insurance_covered'),
            final_payment=inputs.get('final_payment'),
            stay_days=days,
        )
        bill = _run_step(4, admission_id, lambda: _write_bill(admission, summary, settlement),
                         summary_id=summary.pk)

    _run_step(5, admission_id, lambda: _write_final_payment(admission, bill, user),
              summary_id=summary.pk, bill_id=bill.pk)
    _run_step(6, admission_id, lambda: _mark_discharged(admission, bill, discharged_at),
              summary_id=summary.pk, bill_id=bill.pk)
    _run_step(7, admission_id, lambda: beds.release(admission.bed_id, admission_id=admission_id),
              summary_id=summary.pk, bill_id=bill.pk)

    admission = admissions.get_admission(admission_id)
    bed = Bed.objects.get(pk=admission.bed_id)
    if admission.status != AdmissionStatus.DISCHARGED or beds.is_held_by(bed, admission_id):
        raise PartialDischargeFailure(7, admission_id, summary_id=summary.pk, bill_id=bill.pk)
    return admission, summary, bill


def _is_complete(admission: Admission) -> bool:
    if admission.status != AdmissionStatus.DISCHARGED:
        return False
    return not Bed.objects.filter(pk=admission.bed_id, occupied_by=admission.pk).exists()


def _completed_outcome(admission: Admission) -> Optional[DischargeOutcome]:
    """The stored records of a finished discharge, or None while it is still open."""
    if not _is_complete(admission):
        return None
    return DischargeOutcome(
        admission=admission,
        summary=DischargeSummary.objects.filter(admission=admission).first(),
        bill=DischargeBill.objects.filter(admission=admission).first(),
        already_discharged=True,
    )


def discharge(admission_id, request: DischargeRequest, user=None) -> DischargeOutcome:
    """Discharge an admission, resuming any earlier partial attempt.

    A second call on a completed discharge returns the existing records with
    ``already_discharged`` set and writes nothing.
    """
    admission = admissions.get_admission(admission_id)
    done = _completed_outcome(admission)
    if done:
        return done

    resumed = DischargeSummary.objects.filter(admission=admission).exists()
    if not resumed:
        request = validate_request(request)
        admissions.stay_days(admission.admitted_at, request.discharged_at)

    admission, summary, bill = _carry_forward(admission, request, user)
    log_action(user=user, action='discharge_resumed' if resumed else 'discharge', object_type='Admission',
               object_id=admission.pk,
               detail={'bill_number': bill.bill_number, 'net_amount': str(bill.net_amount),
                       'balance': str(bill.balance)})
    logger.info("admission %s discharged with bill %s (balance %s)", admission.pk, bill.bill_number, bill.balance)
    return DischargeOutcome(admission=admission, summary=summary, bill=bill, resumed=resumed)


def resume_discharge(admission_id, user=None) -> DischargeOutcome:
    """Finish a discharge whose summary exists, using the stored inputs."""
    admission = admissions.get_admission(admission_id)
    done = _completed_outcome(admission)
    if done:
        return done
    admission, summary, bill = _carry_forward(admission, None, user)
    log_action(user=user, action='discharge_resumed', object_type='Admission', object_id=admission.pk,
               detail={'bill_number': bill.bill_number})
    logger.info("admission %s discharge resumed and completed", admission.pk)
    return DischargeOutcome(admission=admission, summary=summary, bill=bill, resumed=True)


def incomplete_discharges():
    """Admissions with a discharge summary whose discharge has not finished."""
    return (
        Admission.objects.select_related('patient', 'bed')
        .filter(discharge_summary__isnull=False)
        .filter(Q(status=AdmissionStatus.ACTIVE) | Q(bed__occupied_by=F('id')))
        .order_by('admitted_at')
    )


def format_summary(summary: DischargeSummary) -> dict:
    data = {
        'id': summary.pk,
        'admissionId': str(summary.admission_id),
        'patientId': summary.patient_id,
        'dischargeType': summary.discharge_type,
        'transferHospital': summary.transfer_hospital,
        'dischargeCondition': summary.discharge_condition,
        'finalDiagnosis': summary.final_diagnosis,
        'primaryConsultant': summary.primary_consultant,
        'attendantName': summary.attendant_name,
        'attendantRelationship': summary.attendant_relationship,
        'attendantContact': summary.attendant_contact,
        'documentsHandedOver': summary.documents_handed_over,
        'patientConsent': summary.patient_consent,
        'dischargedAt': summary.discharged_at.isoformat(),
    }
    for name in NARRATIVE_FIELDS:
        data[name] = getattr(summary, name)
    return data


def format_bill(bill: DischargeBill) -> dict:
    settlement = bill_settlement(bill)
    data = settlement.as_dict()
    data.update({
        'id': bill.pk,
        'billNumber': bill.bill_number,
        'summaryId': bill.summary_id,
        'discountReason': bill.discount_reason,
        'paymentMode': bill.payment_mode,
        'createdAt': bill.created_at.isoformat(),
    })
    return data


def format_outcome(outcome: DischargeOutcome) -> dict:
    return {
        'admission': admissions.format_admission(outcome.admission),
        'summary': format_summary(outcome.summary) if outcome.summary else None,
        'bill': format_bill(outcome.bill) if outcome.bill else None,
        'resumed': outcome.resumed,
        'alreadyDischarged': outcome.already_discharged,
    }

