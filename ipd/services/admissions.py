"""
Admission lifecycle: ACTIVE on admit, DISCHARGED once, never back.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from ipd.choices import AdmissionStatus, BedStatus, RoomCategory, coerce
from ipd.errors import (
    AdmissionNotFound,
    AlreadyDischarged,
    BedNotFound,
    BedUnavailable,
    ConstraintRejected,
    PatientAlreadyAdmitted,
    ValidationFailed,
)
from ipd.models import Admission, Bed, IPDCounter, Patient
from ipd.services import beds
from ipd.services.audit import log_action
from ipd.services.settlement import Settlement, money

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def stay_days(admitted_at: datetime, discharged_at: datetime) -> int:
    """Whole days billed for a stay: any started day counts, minimum one."""
    elapsed = discharged_at - admitted_at
    if elapsed < timedelta(0):
        raise ValidationFailed('discharged_at', 'discharge time is before admission time')
    days, remainder = divmod(elapsed, ONE_DAY)
    if remainder:
        days += 1
    return max(days, 1)


def next_ipd_number(on: Optional[date] = None) -> str:
    on = on or timezone.localdate()
    date_key = on.strftime('%Y%m%d')
    prefix = getattr(settings, 'IPD_NUMBER_PREFIX', 'IPD')
    with transaction.atomic():
        counter, _ = IPDCounter.objects.select_for_update().get_or_create(date_key=date_key)
        counter.counter += 1
        counter.save(update_fields=['counter', 'updated_at'])
    return f"{prefix}-{date_key}-{counter.counter:03d}"


def format_admission(a: Admission) -> dict:
    return {
        'id': str(a.id),
        'ipdNumber': a.ipd_number,
        'patientId': a.patient_id,
        'patientName': a.patient.full_name,
        'bedId': a.bed_id,
        'bedNumber': a.bed.bed_number,
        'roomCategory': a.room_category,
        'department': a.department,
        'dailyRate': str(a.daily_rate),
        'admittedAt': a.admitted_at.isoformat(),
        'status': a.status,
        'totalAmount': str(a.total_amount),
        'amountPaid': str(a.amount_paid),
        'balanceAmount': str(a.balance_amount),
        'stayDays': a.stay_days,
        'dischargedAt': a.discharged_at.isoformat() if a.discharged_at else None,
    }


def get_admission(admission_id) -> Admission:
    try:
        return Admission.objects.select_related('patient', 'bed').get(pk=admission_id)
    except Admission.DoesNotExist:
        raise AdmissionNotFound(admission_id)


def list_admissions(*, status=None, patient_id=None):
    qs = Admission.objects.select_related('patient', 'bed')
    if status:
        qs = qs.filter(status=coerce(AdmissionStatus, status, field='status'))
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    return qs.order_by('-admitted_at')


def _integrity_error(exc: IntegrityError, patient: Patient, bed: Bed, category: str):
    message = str(exc)
    if 'ipd_one_active_admission_per_patient' in message or 'patient_id' in message:
        return PatientAlreadyAdmitted(patient.pk)
    if 'ipd_one_active_admission_per_bed' in message or 'bed_id' in message:
        return BedUnavailable(bed.pk)
    if 'room_category' in message:
        return ConstraintRejected('room_category', category, RoomCategory.values)
    return None


def admit(
    *,
    patient,
    bed,
    room_category=None,
    daily_rate=None,
    department: str = '',
    admitted_at: Optional[datetime] = None,
    user=None,
) -> Admission:
    """Admit ``patient`` to ``bed``.

    ``patient`` and ``bed`` may be instances or primary keys.  The room
    category defaults to the bed's and must agree with it when given; the
    daily rate defaults to the bed's rate.
    """
    if not isinstance(patient, Patient):
        patient = Patient.objects.filter(pk=patient).first()
        if patient is None:
            raise ValidationFailed('patient', 'patient not found')
    if not isinstance(bed, Bed):
        bed_id = bed
        bed = Bed.objects.filter(pk=bed_id).first()
        if bed is None:
            raise BedNotFound(bed_id)

    bed_category = coerce(RoomCategory, bed.room_category, field='room_category')
    category = coerce(RoomCategory, room_category, field='room_category') if room_category else bed_category
    if category != bed_category:
        raise ValidationFailed('room_category', f'bed {bed.bed_number} is {bed_category}, not {category}')
    rate = money(daily_rate, 'daily_rate') if daily_rate not in (None, '') else bed.daily_rate

    if Admission.objects.filter(patient=patient, status=AdmissionStatus.ACTIVE).exists():
        raise PatientAlreadyAdmitted(patient.pk)

    admission_id = uuid.uuid4()
    try:
        with transaction.atomic():
            beds.reserve(bed.pk, admission_id)
            admission = Admission.objects.create(
                id=admission_id,
                ipd_number=next_ipd_number(),
                patient=patient,
                bed=bed,
                room_category=category,
                department=department or patient.assigned_department,
                daily_rate=rate,
                admitted_at=admitted_at or timezone.now(),
                created_by=user if getattr(user, 'pk', None) else None,
            )
            log_action(user=user, action='admit', object_type='Admission', object_id=admission.pk,
                       detail={'ipd_number': admission.ipd_number, 'bed': bed.bed_number, 'patient': patient.pk})
    except IntegrityError as exc:
        error = _integrity_error(exc, patient, bed, category)
        if error is None:
            raise
        raise error from exc
    logger.info("admitted patient %s to bed %s as %s", patient.pk, bed.bed_number, admission.ipd_number)
    admission.bed.refresh_from_db()
    return admission


def discharge(admission_id, settlement: Settlement, discharged_at: datetime) -> Admission:
    """Move an ACTIVE admission to DISCHARGED with the settled totals.

    A single conditional update, so only one caller can win.  An admission
    that is no longer ACTIVE raises :class:`AlreadyDischarged`.
    """
    updated = Admission.objects.filter(pk=admission_id, status=AdmissionStatus.ACTIVE).update(
        status=AdmissionStatus.DISCHARGED,
        discharged_at=discharged_at,
        stay_days=settlement.stay_days,
        total_amount=settlement.total_charges,
        amount_paid=settlement.total_paid,
        balance_amount=settlement.balance,
    )
    if not updated:
        if not Admission.objects.filter(pk=admission_id).exists():
            raise AdmissionNotFound(admission_id)
        raise AlreadyDischarged(admission_id)
    logger.info("admission %s discharged", admission_id)
    return get_admission(admission_id)


def ipd_stats(on: Optional[date] = None) -> dict:
    on = on or timezone.localdate()
    counter = IPDCounter.objects.filter(date_key=on.strftime('%Y%m%d')).first()
    prefix = getattr(settings, 'IPD_NUMBER_PREFIX', 'IPD')
    last_number = f"{prefix}-{counter.date_key}-{counter.counter:03d}" if counter and counter.counter else None
    return {
        'date': on.isoformat(),
        'admissionsToday': Admission.objects.filter(ipd_number__startswith=f"{prefix}-{on.strftime('%Y%m%d')}-").count(),
        'lastIpdNumber': last_number,
        'activeAdmissions': Admission.objects.filter(status=AdmissionStatus.ACTIVE).count(),
        'availableBeds': Bed.objects.filter(status=BedStatus.AVAILABLE).count(),
        'occupiedBeds': Bed.objects.filter(status=BedStatus.OCCUPIED).count(),
    }
