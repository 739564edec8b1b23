"""
Database models for the in-patient department.

The ward is described by beds, admissions (one in-ward stay each), an
append-only patient ledger of charges and payments, and the discharge
records: a clinical summary and a frozen financial bill.  Patients are
registered elsewhere; this module only keeps the fields the discharge
workflow reads.
"""
from __future__ import annotations

import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .choices import (
    AdmissionStatus,
    BedStatus,
    DischargeCondition,
    DischargeType,
    EntryStatus,
    LedgerCategory,
    PaymentMode,
    RoomCategory,
)

MONEY = dict(max_digits=12, decimal_places=2)


class User(AbstractUser):
    """Staff account with a ward role.

    ``reception`` admits patients, ``billing`` records ledger entries and
    discharges, ``nurse`` has read access; ``admin`` and ``super`` may do
    everything.
    """
    ROLE_CHOICES = [
        ('reception', 'Front desk'),
        ('nurse', 'Nurse'),
        ('billing', 'Billing'),
        ('admin', 'Administrator'),
        ('super', 'Super Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='nurse')

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Patient(models.Model):
    """Demographic record owned by patient registration."""
    patient_code = models.CharField(max_length=32, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    assigned_doctor = models.CharField(max_length=255, blank=True)
    assigned_department = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name} ({self.patient_code})"


class Bed(models.Model):
    """A physical bed.

    ``occupied_by`` holds the id of the admission that reserved the bed so a
    late release from an earlier stay cannot free a bed taken since.
    """
    bed_number = models.CharField(max_length=20, unique=True)
    room_category = models.CharField(max_length=16, choices=RoomCategory.choices)
    daily_rate = models.DecimalField(default=0, **MONEY)
    status = models.CharField(
        max_length=16, choices=BedStatus.choices, default=BedStatus.AVAILABLE, db_index=True
    )
    occupied_by = models.UUIDField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['bed_number']
        constraints = [
            models.CheckConstraint(
                condition=Q(room_category__in=RoomCategory.values),
                name='ipd_bed_room_category_valid',
            ),
            models.CheckConstraint(
                condition=Q(status__in=BedStatus.values),
                name='ipd_bed_status_valid',
            ),
        ]

    def __str__(self) -> str:
        return f"Bed {self.bed_number} [{self.room_category}] {self.status}"


class Admission(models.Model):
    """One in-ward stay, from bed assignment to discharge.

    ``total_amount``, ``amount_paid`` and ``balance_amount`` cache ledger
    aggregates; they are only written by
    :func:`ipd.services.ledger.refresh_admission_totals` and by the discharge
    transition.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ipd_number = models.CharField(max_length=32, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='admissions')
    bed = models.ForeignKey(Bed, on_delete=models.PROTECT, related_name='admissions')
    room_category = models.CharField(max_length=16, choices=RoomCategory.choices)
    department = models.CharField(max_length=255, blank=True)
    daily_rate = models.DecimalField(default=0, **MONEY)
    admitted_at = models.DateTimeField(default=timezone.now)
    status = models.CharField(
        max_length=16, choices=AdmissionStatus.choices, default=AdmissionStatus.ACTIVE, db_index=True
    )
    total_amount = models.DecimalField(default=0, **MONEY)
    amount_paid = models.DecimalField(default=0, **MONEY)
    balance_amount = models.DecimalField(default=0, **MONEY)
    stay_days = models.PositiveIntegerField(null=True, blank=True)
    discharged_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-admitted_at']
        constraints = [
            models.UniqueConstraint(
                fields=['patient'],
                condition=Q(status=AdmissionStatus.ACTIVE),
                name='ipd_one_active_admission_per_patient',
            ),
            models.UniqueConstraint(
                fields=['bed'],
                condition=Q(status=AdmissionStatus.ACTIVE),
                name='ipd_one_active_admission_per_bed',
            ),
            models.CheckConstraint(
                condition=Q(room_category__in=RoomCategory.values),
                name='ipd_admission_room_category_valid',
            ),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == AdmissionStatus.ACTIVE

    def __str__(self) -> str:
        return f"{self.ipd_number} {self.patient_id} [{self.status}]"


class LedgerEntry(models.Model):
    """An append-only charge or payment line for a patient.

    Charges are positive; refunds are negative.  Only ``status`` may change
    after creation.  ``idempotency_key`` is set on entries written by the
    discharge workflow so a retried step finds the entry it already wrote.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='ledger_entries')
    admission = models.ForeignKey(
        Admission, null=True, blank=True, on_delete=models.PROTECT, related_name='ledger_entries'
    )
    category = models.CharField(max_length=16, choices=LedgerCategory.choices)
    amount = models.DecimalField(**MONEY)
    payment_mode = models.CharField(max_length=16, choices=PaymentMode.choices, default=PaymentMode.CASH)
    status = models.CharField(max_length=16, choices=EntryStatus.choices, default=EntryStatus.COMPLETED)
    description = models.CharField(max_length=255, blank=True)
    idempotency_key = models.CharField(max_length=128, unique=True, null=True, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['patient', 'status', 'created_at'], name='ipd_ledger_patient_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(category__in=LedgerCategory.values),
                name='ipd_ledger_category_valid',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.category} {self.amount} ({self.status})"


class DischargeSummary(models.Model):
    """Clinical narrative and administrative attestations for a discharge.

    Written once per admission, before the bill.  ``discharged_at`` and
    ``billing_inputs`` freeze the values the first attempt was made with so
    a resumed discharge settles the same figures.
    """
    admission = models.OneToOneField(Admission, on_delete=models.PROTECT, related_name='discharge_summary')
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='discharge_summaries')
    discharge_type = models.CharField(max_length=16, choices=DischargeType.choices, default=DischargeType.ROUTINE)
    transfer_hospital = models.CharField(max_length=255, blank=True)
    discharge_condition = models.CharField(
        max_length=16, choices=DischargeCondition.choices, default=DischargeCondition.STABLE
    )
    final_diagnosis = models.TextField()
    primary_consultant = models.CharField(max_length=255)
    chief_complaints = models.TextField(blank=True)
    hopi = models.TextField(blank=True)
    past_history = models.TextField(blank=True)
    investigations = models.TextField(blank=True)
    course_of_stay = models.TextField(blank=True)
    treatment_summary = models.TextField(blank=True)
    discharge_medication = models.TextField(blank=True)
    follow_up_on = models.TextField(blank=True)
    discharge_notes = models.TextField(blank=True)
    attendant_name = models.CharField(max_length=255)
    attendant_relationship = models.CharField(max_length=64, blank=True)
    attendant_contact = models.CharField(max_length=32, blank=True)
    documents_handed_over = models.BooleanField(default=False)
    patient_consent = models.BooleanField(default=False)
    discharged_at = models.DateTimeField()
    billing_inputs = models.JSONField(default=dict, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"Discharge summary for {self.admission_id}"


class DischargeBill(models.Model):
    """Frozen financial snapshot of a discharge; never updated."""
    summary = models.OneToOneField(DischargeSummary, on_delete=models.PROTECT, related_name='bill')
    admission = models.OneToOneField(Admission, on_delete=models.PROTECT, related_name='discharge_bill')
    bill_number = models.CharField(max_length=48, unique=True)
    existing_charges = models.DecimalField(**MONEY)
    line_items = models.JSONField(default=list, blank=True)
    additional_charges = models.DecimalField(**MONEY)
    total_charges = models.DecimalField(**MONEY)
    discount = models.DecimalField(default=0, **MONEY)
    discount_reason = models.CharField(max_length=255, blank=True)
    insurance_covered = models.DecimalField(default=0, **MONEY)
    net_amount = models.DecimalField(**MONEY)
    prior_payments = models.DecimalField(**MONEY)
    final_payment = models.DecimalField(default=0, **MONEY)
    payment_mode = models.CharField(max_length=16, choices=PaymentMode.choices, default=PaymentMode.CASH)
    total_paid = models.DecimalField(**MONEY)
    balance = models.DecimalField(**MONEY)
    stay_days = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.bill_number} net={self.net_amount} balance={self.balance}"


class IPDCounter(models.Model):
    """Per-day sequence behind ``IPD-YYYYMMDD-NNN`` numbers."""
    date_key = models.CharField(max_length=8, unique=True)
    counter = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.date_key}: {self.counter}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='ipd_audit_action_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='ipd_audit_object_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action}:{self.object_type}:{self.object_id}"
