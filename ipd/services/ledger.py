"""
Patient ledger.

Entries are append-only; :func:`set_entry_status` is the only mutation.
After every append or status change the admission's cached totals are
recomputed from the ledger through the settlement calculator, so the cached
figures are never written by hand.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from ipd.choices import AdmissionStatus, EntryStatus, LedgerCategory, PaymentMode, coerce
from ipd.errors import InvalidEntryTransition, ValidationFailed
from ipd.models import Admission, DischargeBill, LedgerEntry, Patient
from ipd.services.audit import log_action
from ipd.services.settlement import ZERO, calculate_settlement, money

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    EntryStatus.PENDING: {EntryStatus.COMPLETED, EntryStatus.CANCELLED},
    EntryStatus.COMPLETED: {EntryStatus.CANCELLED},
    EntryStatus.CANCELLED: set(),
}


def discharge_key_prefix(admission_id) -> str:
    return f"discharge:{admission_id}:"


def format_entry(entry: LedgerEntry) -> dict:
    return {
        'id': entry.id,
        'patientId': entry.patient_id,
        'admissionId': str(entry.admission_id) if entry.admission_id else None,
        'category': entry.category,
        'amount': str(entry.amount),
        'paymentMode': entry.payment_mode,
        'status': entry.status,
        'description': entry.description,
        'createdAt': entry.created_at.isoformat(),
    }


def entries_for_admission(admission: Admission, *, exclude_discharge_artifacts: bool = False,
                          until: Optional[datetime] = None):
    """COMPLETED entries belonging to ``admission``.

    That is every entry attached to the admission plus unattached entries of
    the same patient dated within the stay.  With
    ``exclude_discharge_artifacts`` the entries written by the discharge
    workflow itself are left out, so a resumed discharge settles the same
    figures as the first attempt.
    """
    window = Q(admission__isnull=True, patient_id=admission.patient_id, created_at__gte=admission.admitted_at)
    until = until or admission.discharged_at
    if until is not None:
        window &= Q(created_at__lte=until)
    qs = LedgerEntry.objects.filter(status=EntryStatus.COMPLETED).filter(Q(admission=admission) | window)
    if exclude_discharge_artifacts:
        qs = qs.exclude(idempotency_key__startswith=discharge_key_prefix(admission.pk))
    return qs.order_by('created_at', 'id')


def refresh_admission_totals(admission: Admission) -> Admission:
    """Recompute ``total_amount``, ``amount_paid`` and ``balance_amount``.

    Discount and insurance only exist on a discharge bill, so an admission
    without one is settled with both at zero.
    """
    with transaction.atomic():
        admission = Admission.objects.select_for_update().get(pk=admission.pk)
        bill = DischargeBill.objects.filter(admission=admission).first()
        settlement = calculate_settlement(
            entries_for_admission(admission),
            discount=bill.discount if bill else ZERO,
            insurance_covered=bill.insurance_covered if bill else ZERO,
            stay_days=admission.stay_days or 0,
        )
        admission.total_amount = settlement.total_charges
        admission.amount_paid = settlement.total_paid
        admission.balance_amount = settlement.balance
        admission.save(update_fields=['total_amount', 'amount_paid', 'balance_amount'])
    return admission


def _check_sign(category: str, amount) -> None:
    if category == LedgerCategory.REFUND:
        if amount >= 0:
            raise ValidationFailed('amount', 'refund amount must be negative')
    elif amount <= 0:
        raise ValidationFailed('amount', 'amount must be greater than zero')


def record_entry(
    *,
    patient: Patient,
    category,
    amount,
    payment_mode=PaymentMode.CASH,
    status=EntryStatus.COMPLETED,
    description: str = '',
    admission: Optional[Admission] = None,
    idempotency_key: Optional[str] = None,
    created_at: Optional[datetime] = None,
    user=None,
) -> LedgerEntry:
    """Append one entry to ``patient``'s ledger.

    An ``idempotency_key`` that already exists returns the stored entry
    unchanged.  Without an explicit ``admission`` the entry attaches to the
    patient's ACTIVE admission, if any.
    """
    category = coerce(LedgerCategory, category, field='category')
    payment_mode = coerce(PaymentMode, payment_mode, field='payment_mode')
    status = coerce(EntryStatus, status, field='status')
    amount = money(amount, 'amount', allow_negative=True)
    _check_sign(category, amount)

    if admission is None:
        admission = Admission.objects.filter(patient=patient, status=AdmissionStatus.ACTIVE).first()
    elif admission.patient_id != patient.pk:
        raise ValidationFailed('admission', 'admission belongs to another patient')

    fields = dict(
        patient=patient,
        admission=admission,
        category=category,
        amount=amount,
        payment_mode=payment_mode,
        status=status,
        description=(description or '')[:255],
        created_by=user if getattr(user, 'pk', None) else None,
        created_at=created_at or timezone.now(),
    )
    with transaction.atomic():
        if idempotency_key:
            entry, created = LedgerEntry.objects.get_or_create(idempotency_key=idempotency_key, defaults=fields)
        else:
            entry, created = LedgerEntry.objects.create(**fields), True
        if not created:
            return entry
        if admission is not None:
            refresh_admission_totals(admission)
        log_action(user=user, action='ledger_record', object_type='LedgerEntry', object_id=entry.id,
                   detail={'category': category, 'amount': str(amount), 'status': status,
                           'admission': str(admission.pk) if admission else None})
    logger.info("ledger %s %s for patient %s (entry %s)", category, amount, patient.pk, entry.id)
    return entry


def set_entry_status(entry: LedgerEntry, status, *, user=None) -> LedgerEntry:
    status = coerce(EntryStatus, status, field='status')
    with transaction.atomic():
        entry = LedgerEntry.objects.select_for_update().get(pk=entry.pk)
        if status == entry.status:
            return entry
        if status not in ALLOWED_TRANSITIONS[entry.status]:
            raise InvalidEntryTransition(entry.pk, entry.status, status)
        previous = entry.status
        entry.status = status
        entry.save(update_fields=['status'])
        if entry.admission_id:
            refresh_admission_totals(entry.admission)
        log_action(user=user, action='ledger_status', object_type='LedgerEntry', object_id=entry.id,
                   detail={'from': previous, 'to': status})
    logger.info("ledger entry %s %s -> %s", entry.id, previous, status)
    return entry


def list_entries(*, patient_id=None, admission_id=None, status=None):
    qs = LedgerEntry.objects.select_related('admission')
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if admission_id:
        qs = qs.filter(admission_id=admission_id)
    if status:
        qs = qs.filter(status=coerce(EntryStatus, status, field='status'))
    return qs.order_by('created_at', 'id')
