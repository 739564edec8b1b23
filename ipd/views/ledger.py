"""
Ledger endpoints.  Entries are append-only; only their status may change.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ipd.models import LedgerEntry, Patient
from ipd.permissions import CanBill, IsWardStaff
from ipd.serializers.ledger import LedgerListQuerySerializer, LedgerRecordSerializer, LedgerStatusSerializer
from ipd.services.admissions import get_admission
from ipd.services.ledger import format_entry, list_entries, record_entry, set_entry_status


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def ledger_list(request):
    q = LedgerListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = list_entries(
        patient_id=q.validated_data.get('patientId'),
        admission_id=q.validated_data.get('admissionId'),
        status=q.validated_data.get('status'),
    )
    return Response([format_entry(e) for e in qs])


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanBill])
def ledger_record(request):
    s = LedgerRecordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    patient = Patient.objects.filter(pk=v['patientId']).first()
    if not patient:
        raise NotFound('patient not found')
    admission = get_admission(v['admissionId']) if v.get('admissionId') else None
    entry = record_entry(
        patient=patient,
        admission=admission,
        category=v['category'],
        amount=v['amount'],
        payment_mode=v.get('paymentMode') or 'CASH',
        status=v.get('status') or 'COMPLETED',
        description=v.get('description', ''),
        idempotency_key=v.get('idempotencyKey') or None,
        user=request.user,
    )
    return Response({'ok': True, 'entry': format_entry(entry)}, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanBill])
def ledger_status(request):
    s = LedgerStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    entry = LedgerEntry.objects.filter(pk=s.validated_data['entryId']).first()
    if not entry:
        raise NotFound('entry not found')
    entry = set_entry_status(entry, s.validated_data['status'], user=request.user)
    return Response({'ok': True, 'entry': format_entry(entry)})
