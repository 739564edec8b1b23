"""
Bed board endpoints.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ipd.permissions import IsAdminRole, IsWardStaff
from ipd.serializers.bed import BedCreateSerializer, BedListQuerySerializer
from ipd.services.audit import log_action
from ipd.services.beds import create_bed, format_bed, list_beds


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def beds_list(request):
    q = BedListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = list_beds(status=q.validated_data.get('status'), room_category=q.validated_data.get('roomCategory'))
    return Response([format_bed(b) for b in qs])


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def bed_create(request):
    s = BedCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    bed = create_bed(bed_number=v['bedNumber'], room_category=v['roomCategory'], daily_rate=v['dailyRate'])
    log_action(user=request.user, action='bed_create', object_type='Bed', object_id=bed.id,
               detail={'bed_number': bed.bed_number, 'room_category': bed.room_category})
    return Response({'ok': True, 'bed': format_bed(bed)}, status=201)
