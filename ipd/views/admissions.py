"""
Admission endpoints: admit, list, detail and the daily IPD counter.

Front desk (``reception``) admits; every ward role may read.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ipd.permissions import CanAdmit, IsWardStaff
from ipd.serializers.admission import AdmissionListQuerySerializer, AdmitSerializer, StatsQuerySerializer
from ipd.services.admissions import admit, format_admission, get_admission, ipd_stats, list_admissions


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def admissions_list(request):
    q = AdmissionListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = list_admissions(status=q.validated_data.get('status'), patient_id=q.validated_data.get('patientId'))
    page = q.validated_data.get('page') or 1
    page_size = q.validated_data.get('pageSize') or 0
    if page_size:
        start = (page - 1) * page_size
        qs = qs[start:start + page_size]
    return Response([format_admission(a) for a in qs])


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanAdmit])
def admission_admit(request):
    s = AdmitSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    admission = admit(
        patient=v['patientId'],
        bed=v['bedId'],
        room_category=v.get('roomCategory'),
        daily_rate=v.get('dailyRate'),
        department=v.get('department', ''),
        admitted_at=v.get('admittedAt'),
        user=request.user,
    )
    return Response({'ok': True, 'admission': format_admission(admission)}, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def admission_detail(request, admission_id):
    return Response(format_admission(get_admission(admission_id)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def stats(request):
    q = StatsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response(ipd_stats(q.validated_data.get('date')))
