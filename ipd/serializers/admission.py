import bleach
from rest_framework import serializers


class AdmitSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    bedId = serializers.IntegerField(min_value=1)
    roomCategory = serializers.CharField(max_length=16, required=False, allow_blank=True)
    dailyRate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True)
    department = serializers.CharField(max_length=255, required=False, allow_blank=True)
    admittedAt = serializers.DateTimeField(required=False, allow_null=True)

    def validate_department(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class AdmissionListQuerySerializer(serializers.Serializer):
    status = serializers.CharField(required=False, allow_blank=True)
    patientId = serializers.IntegerField(required=False, min_value=1)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)


class StatsQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
