"""
Discharge endpoints.

A discharge that stops part way answers 409 with code
``discharge_incomplete`` and the ids needed to resume; it is never reported
as a success until the admission is DISCHARGED and the bed AVAILABLE.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ipd.models import DischargeBill, DischargeSummary
from ipd.permissions import CanBill, CanBillOrWardRead
from ipd.serializers.discharge import DischargeSerializer, SettlementInputSerializer
from ipd.services import discharge as discharge_service
from ipd.services.admissions import get_admission
from ipd.services.settlement import ManualCharges, preview_settlement


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanBill])
def settlement_preview(request, admission_id):
    s = SettlementInputSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    admission = get_admission(admission_id)
    settlement = preview_settlement(
        admission,
        charges=ManualCharges.from_data(v.get('charges')),
        discount=v.get('discount'),
        insurance_covered=v.get('insurance_covered'),
        final_payment=v.get('final_payment'),
        discharged_at=v.get('discharged_at'),
    )
    return Response({'ok': True, 'settlement': settlement.as_dict()})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, CanBillOrWardRead])
def discharge(request, admission_id):
    """GET returns the stored summary and bill; POST discharges."""
    if request.method == 'GET':
        return _discharge_detail(admission_id)
    s = DischargeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    req = discharge_service.DischargeRequest.from_data(s.validated_data)
    outcome = discharge_service.discharge(admission_id, req, user=request.user)
    return Response({'ok': True, **discharge_service.format_outcome(outcome)})

# ScopedRateThrottle reads the scope from the wrapped view class
discharge.cls.throttle_scope = 'discharge'


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanBill])
def discharge_resume(request, admission_id):
    outcome = discharge_service.resume_discharge(admission_id, user=request.user)
    return Response({'ok': True, **discharge_service.format_outcome(outcome)})


def _discharge_detail(admission_id):
    admission = get_admission(admission_id)
    summary = DischargeSummary.objects.filter(admission=admission).first()
    if summary is None:
        raise NotFound('no discharge summary for this admission')
    bill = DischargeBill.objects.filter(summary=summary).first()
    return Response({
        'ok': True,
        'summary': discharge_service.format_summary(summary),
        'bill': discharge_service.format_bill(bill) if bill else None,
        'complete': not discharge_service.incomplete_discharges().filter(pk=admission.pk).exists(),
    })
