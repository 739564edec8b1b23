"""
Input validation for the discharge endpoints.

Field presence and consent checks are left to
:func:`ipd.services.discharge.validate_request` so the API and the service
report the same ``ValidationFailed(field)``; this layer only parses types and
strips markup from the free-text clinical fields.
"""
import bleach
from rest_framework import serializers

from ipd.services.discharge import NARRATIVE_FIELDS

MONEY = dict(max_digits=12, decimal_places=2, required=False, default=0)
TEXT_FIELDS = (
    'final_diagnosis', 'primary_consultant', 'attendant_name', 'attendant_relationship',
    'attendant_contact', 'transfer_hospital', 'discount_reason',
) + NARRATIVE_FIELDS


def clean_text(v):
    return bleach.clean((v or '').strip(), tags=set(), strip=True)


class ManualChargesSerializer(serializers.Serializer):
    doctor_fee = serializers.DecimalField(**MONEY)
    nursing = serializers.DecimalField(**MONEY)
    medicine = serializers.DecimalField(**MONEY)
    diagnostic = serializers.DecimalField(**MONEY)
    operation = serializers.DecimalField(**MONEY)
    other = serializers.DecimalField(**MONEY)
    bed_rate = serializers.DecimalField(**MONEY)


class SettlementInputSerializer(serializers.Serializer):
    charges = ManualChargesSerializer(required=False)
    discount = serializers.DecimalField(**MONEY)
    insurance_covered = serializers.DecimalField(**MONEY)
    final_payment = serializers.DecimalField(**MONEY)
    discharged_at = serializers.DateTimeField(required=False, allow_null=True)


class DischargeSerializer(SettlementInputSerializer):
    final_diagnosis = serializers.CharField(required=False, allow_blank=True)
    primary_consultant = serializers.CharField(max_length=255, required=False, allow_blank=True)
    attendant_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    attendant_relationship = serializers.CharField(max_length=64, required=False, allow_blank=True)
    attendant_contact = serializers.CharField(max_length=32, required=False, allow_blank=True)
    patient_consent = serializers.BooleanField(required=False, default=False)
    documents_handed_over = serializers.BooleanField(required=False, default=False)
    discharge_type = serializers.CharField(max_length=16, required=False, allow_blank=True)
    transfer_hospital = serializers.CharField(max_length=255, required=False, allow_blank=True)
    discharge_condition = serializers.CharField(max_length=16, required=False, allow_blank=True)
    discount_reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
    payment_mode = serializers.CharField(max_length=16, required=False, allow_blank=True)
    chief_complaints = serializers.CharField(required=False, allow_blank=True)
    hopi = serializers.CharField(required=False, allow_blank=True)
    past_history = serializers.CharField(required=False, allow_blank=True)
    investigations = serializers.CharField(required=False, allow_blank=True)
    course_of_stay = serializers.CharField(required=False, allow_blank=True)
    treatment_summary = serializers.CharField(required=False, allow_blank=True)
    discharge_medication = serializers.CharField(required=False, allow_blank=True)
    follow_up_on = serializers.CharField(required=False, allow_blank=True)
    discharge_notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        for name in TEXT_FIELDS:
            if name in attrs:
                attrs[name] = clean_text(attrs[name])
        return attrs

