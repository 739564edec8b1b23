import bleach
from rest_framework import serializers


class LedgerRecordSerializer(serializers.Serializer):
    """Amounts are signed: charges and payments positive, refunds negative."""
    patientId = serializers.IntegerField(min_value=1)
    admissionId = serializers.UUIDField(required=False, allow_null=True)
    category = serializers.CharField(max_length=16)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    paymentMode = serializers.CharField(max_length=16, required=False, allow_blank=True)
    status = serializers.CharField(max_length=16, required=False, allow_blank=True)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    idempotencyKey = serializers.CharField(max_length=128, required=False, allow_blank=True)

    def validate_description(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate_idempotencyKey(self, v):
        v = (v or '').strip()
        if v.startswith('discharge:'):
            raise serializers.ValidationError('the discharge: prefix is reserved')
        return v


class LedgerStatusSerializer(serializers.Serializer):
    entryId = serializers.IntegerField(min_value=1)
    status = serializers.CharField(max_length=16)


class LedgerListQuerySerializer(serializers.Serializer):
    patientId = serializers.IntegerField(required=False, min_value=1)
    admissionId = serializers.UUIDField(required=False)
    status = serializers.CharField(required=False, allow_blank=True)
